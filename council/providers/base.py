"""Abstract base for all council providers, plus the shared call path."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from config.config_loader import PromptsConfig
from council.errors import ProviderError
from council.jsonutil import decode_agent_json
from council.models import Phase
from council.normalize import normalize_response
from council.schema import RESPONSE_KEYS, AgentResponse

logger = logging.getLogger(__name__)


@dataclass
class ProviderRequest:
    agent_name: str
    round: int
    phase: Phase
    prompt: str
    transcript: str
    repo_context: str = ""
    timeout_sec: float | None = None


class AIProvider(ABC):
    """Abstract base for all council providers. Stateless between calls."""

    @abstractmethod
    def name(self) -> str:
        """Return the provider id (e.g. 'codex', 'claude')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the actual model identifier string."""
        ...

    @abstractmethod
    async def invoke(self, prompt: str, timeout_sec: float | None) -> str:
        """Send the fully rendered prompt and return the raw model text.

        Raises:
            ProviderError: On API failure, timeout, or empty output.
        """
        ...


def profiles_block(prompts: PromptsConfig) -> str:
    if not prompts.profiles:
        return ""
    lines = ["Provider profiles (use these to coordinate):"]
    for name, profile in prompts.profiles.items():
        lines.append(f"- {name}:")
        lines.append(f"  - Strengths: {'; '.join(profile.strengths)}")
        lines.append(f"  - Best for: {'; '.join(profile.best_for)}")
        lines.append(f"  - Ask others for: {'; '.join(profile.ask_others_for)}")
    return "\n".join(lines)


def build_prompt(request: ProviderRequest, prompts: PromptsConfig) -> str:
    repo_context = f"\n{request.repo_context.strip()}\n" if request.repo_context.strip() else ""
    return prompts.agent.format(
        agent_name=request.agent_name,
        round=request.round,
        phase=request.phase,
        response_keys=", ".join(RESPONSE_KEYS),
        profiles=profiles_block(prompts),
        prompt=request.prompt,
        repo_context=repo_context,
        transcript=request.transcript,
    )


def parse_agent_output(provider_name: str, raw: str) -> AgentResponse:
    """Decode the JSON object in ``raw`` and normalize it.

    Raises:
        ProviderError: If no JSON object can be found.
        SchemaError: If the object matches no known response shape.
    """
    decoded = decode_agent_json(raw)
    if decoded is None:
        raise ProviderError(provider_name, f"Output was not JSON.\n{raw.strip()}")
    return normalize_response(decoded)


async def run_provider(provider: AIProvider, request: ProviderRequest, prompts: PromptsConfig) -> AgentResponse:
    """Render, invoke and normalize one provider call."""
    raw = await provider.invoke(build_prompt(request, prompts), request.timeout_sec)
    logger.debug("%s returned %d chars (%s, round %d)", provider.name(), len(raw), request.phase, request.round)
    return parse_agent_output(provider.name(), raw)
