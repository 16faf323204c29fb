"""Shared pytest fixtures and test doubles."""

import json
from collections import defaultdict
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import AppConfig, DefaultsConfig, ModelConfig, PromptsConfig, ProviderProfile
from council.artifacts import ArtifactStore
from council.beads import CommentStore
from council.engine import EngineSettings
from council.models import ArtifactRef, Comment
from council.providers.base import AIProvider
from council.schema import Artifact


def agent_json(agent: str = "mock", round: int = 1, phase: str = "research", **fields) -> str:
    """Render a valid agent response as the raw text a provider would return."""
    payload = {
        "agent": agent,
        "round": round,
        "phase": phase,
        "message": f"{agent} thinks this through.",
        "questions_for_user": [],
        "assumptions": [],
        "need_another_round": False,
        "why_continue": "",
        "chair_score": 5,
        "chair_reason": "",
        "artifacts": [],
    }
    payload.update(fields)
    return json.dumps(payload)


def prompt_phase(prompt: str) -> str:
    """Read the phase back out of a prompt rendered with the test agent template."""
    return prompt.splitlines()[0].rsplit("phase=", 1)[1]


def prompt_agent(prompt: str) -> str:
    return prompt.splitlines()[0].split()[0].removeprefix("agent=")


class MockProvider(AIProvider):
    """Test double AIProvider."""

    def __init__(self, provider_name: str = "mock", **fields) -> None:
        self._name = provider_name
        # Shadow the class method with an AsyncMock at the instance level.
        # ABC check passes because invoke is defined in the class body below.
        self.invoke = AsyncMock(return_value=agent_json(provider_name, **fields))  # type: ignore[assignment]

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    async def invoke(self, prompt: str, timeout_sec: float | None) -> str:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return agent_json(self._name)


class MemoryStore(CommentStore):
    """In-memory stand-in for the Beads CLI."""

    def __init__(self) -> None:
        self.comments: dict[str, list[Comment]] = defaultdict(list)
        self.issues: dict[str, dict] = {}
        self.dependencies: list[tuple[str, str, str]] = []
        self._next_comment_id = 1

    async def create_issue(
        self,
        title: str,
        description: str,
        labels: list[str] | None = None,
        priority: str | None = None,
        acceptance: str | None = None,
        issue_type: str | None = None,
    ) -> str:
        issue_id = f"test-{len(self.issues) + 1}"
        self.issues[issue_id] = {
            "title": title,
            "description": description,
            "labels": labels or [],
            "priority": priority,
            "acceptance": acceptance,
            "issue_type": issue_type,
        }
        return issue_id

    async def add_comment(self, issue_id: str, text: str) -> None:
        self.comments[issue_id].append(Comment(id=self._next_comment_id, text=text, issue_id=issue_id))
        self._next_comment_id += 1

    async def list_comments(self, issue_id: str) -> list[Comment]:
        return list(self.comments[issue_id])

    async def add_dependency(self, issue_id: str, depends_on_id: str, dep_type: str = "blocks") -> None:
        self.dependencies.append((issue_id, depends_on_id, dep_type))

    def texts(self, issue_id: str) -> list[str]:
        return [c.text for c in self.comments[issue_id]]


class MemoryArtifactStore(ArtifactStore):
    """Records persisted artifacts instead of writing files."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, int, str, str, list[Artifact]]] = []

    async def persist(
        self,
        issue_id: str,
        round_number: int,
        phase: str,
        agent_name: str,
        artifacts: list[Artifact],
    ) -> list[ArtifactRef]:
        self.calls.append((issue_id, round_number, phase, agent_name, list(artifacts)))
        return [
            ArtifactRef(artifact=a, saved_path=f"mem://{issue_id}/round-{round_number}/{phase}/{agent_name}/{i}")
            for i, a in enumerate(artifacts, start=1)
        ]


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="claude",
        sdk="anthropic",
        model="claude-sonnet-4-5",
        api_key_env="TEST_API_KEY",
        max_tokens=1024,
        base_url=None,
    )


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        agent=(
            "agent={agent_name} round={round} phase={phase}\n"
            "keys={response_keys}\n"
            "{profiles}\n"
            "prompt={prompt}\n"
            "{repo_context}\n"
            "transcript={transcript}"
        ),
        plan="PLAN MODE. Emit a beads_issue_plan artifact shaped like:\n{plan_shape}",
        profiles={
            "codex": ProviderProfile(
                strengths=["Implementation planning"],
                best_for=["Executable steps"],
                ask_others_for=["Web facts"],
            ),
        },
    )


@pytest.fixture
def sample_defaults_config(tmp_path: Path) -> DefaultsConfig:
    return DefaultsConfig(
        max_rounds=2,
        heartbeat_seconds=0,
        beads_heartbeat_seconds=0,
        user_wait_seconds=0,
        artifacts_dir=tmp_path / "artifacts",
        beads_db=tmp_path / "council.db",
        dev_beads_db=tmp_path / "dev.db",
    )


@pytest.fixture
def sample_app_config(
    sample_defaults_config: DefaultsConfig,
    sample_prompts_config: PromptsConfig,
    sample_model_config: ModelConfig,
) -> AppConfig:
    return AppConfig(
        defaults=sample_defaults_config,
        models={"claude": sample_model_config},
        prompts=sample_prompts_config,
        available_providers={"claude"},
    )


@pytest.fixture
def engine_settings() -> EngineSettings:
    """Quiet settings: no heartbeats, no user waits."""
    return EngineSettings(
        max_rounds=3,
        heartbeat_seconds=0,
        beads_heartbeat_seconds=0,
        timeout_seconds=5,
        user_wait_seconds=0,
        user_poll_seconds=0.01,
    )


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def artifact_store() -> MemoryArtifactStore:
    return MemoryArtifactStore()


@pytest.fixture
def three_mock_providers() -> dict[str, MockProvider]:
    return {
        "codex": MockProvider("codex", chair_score=7),
        "claude": MockProvider("claude", chair_score=9),
        "gemini": MockProvider("gemini", chair_score=9),
    }
