"""Load settings.yaml into typed dataclasses. Reports which providers have API keys."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from council.errors import ConfigurationError

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    max_tokens: int
    base_url: str | None = None


@dataclass
class ProviderProfile:
    strengths: list[str] = field(default_factory=list)
    best_for: list[str] = field(default_factory=list)
    ask_others_for: list[str] = field(default_factory=list)


@dataclass
class PromptsConfig:
    agent: str
    plan: str
    profiles: dict[str, ProviderProfile] = field(default_factory=dict)


@dataclass
class DefaultsConfig:
    max_rounds: int = 5
    heartbeat_seconds: int = 15
    beads_heartbeat_seconds: int = 60
    beads_heartbeat_max: int = 5
    timeout_seconds: int = 600
    user_wait_seconds: int = 60
    max_user_waits: int = 2
    user_poll_seconds: int = 2
    repo_context_enabled: bool = True
    repo_context_budget_bytes: int = 12_000
    repo_context_max_matches: int = 40
    repo_context_excerpt_radius_lines: int = 2
    artifacts_dir: Path = Path(".council") / "artifacts"
    beads_db: Path | None = None
    dev_beads_db: Path | None = None
    plan_provider: str = "codex"


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    models: dict[str, ModelConfig]
    prompts: PromptsConfig
    available_providers: set[str] = field(default_factory=set)


def _optional_path(value: object) -> Path | None:
    return Path(str(value)) if value else None


def _load_defaults(raw: dict) -> DefaultsConfig:
    base = DefaultsConfig()
    return DefaultsConfig(
        max_rounds=int(raw.get("max_rounds", base.max_rounds)),
        heartbeat_seconds=int(raw.get("heartbeat_seconds", base.heartbeat_seconds)),
        beads_heartbeat_seconds=int(raw.get("beads_heartbeat_seconds", base.beads_heartbeat_seconds)),
        beads_heartbeat_max=int(raw.get("beads_heartbeat_max", base.beads_heartbeat_max)),
        timeout_seconds=int(raw.get("timeout_seconds", base.timeout_seconds)),
        user_wait_seconds=int(raw.get("user_wait_seconds", base.user_wait_seconds)),
        max_user_waits=int(raw.get("max_user_waits", base.max_user_waits)),
        user_poll_seconds=int(raw.get("user_poll_seconds", base.user_poll_seconds)),
        repo_context_enabled=bool(raw.get("repo_context_enabled", base.repo_context_enabled)),
        repo_context_budget_bytes=int(raw.get("repo_context_budget_bytes", base.repo_context_budget_bytes)),
        repo_context_max_matches=int(raw.get("repo_context_max_matches", base.repo_context_max_matches)),
        repo_context_excerpt_radius_lines=int(
            raw.get("repo_context_excerpt_radius_lines", base.repo_context_excerpt_radius_lines)
        ),
        artifacts_dir=Path(str(raw.get("artifacts_dir", base.artifacts_dir))),
        beads_db=_optional_path(raw.get("beads_db")),
        dev_beads_db=_optional_path(raw.get("dev_beads_db")),
        plan_provider=str(raw.get("plan_provider", base.plan_provider)),
    )


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if the settings file is missing and
    ConfigurationError if a required section is absent or malformed.
    Missing API keys are logged, not raised; callers check available_providers.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    try:
        defaults = _load_defaults(raw.get("defaults") or {})

        prompts_raw = raw["prompts"]
        profiles_raw = raw.get("profiles") or {}
        prompts = PromptsConfig(
            agent=prompts_raw["agent"],
            plan=prompts_raw["plan"],
            profiles={
                name: ProviderProfile(
                    strengths=[str(s) for s in p.get("strengths", [])],
                    best_for=[str(s) for s in p.get("best_for", [])],
                    ask_others_for=[str(s) for s in p.get("ask_others_for", [])],
                )
                for name, p in profiles_raw.items()
            },
        )

        models: dict[str, ModelConfig] = {}
        available_providers: set[str] = set()
        for provider_name, model_raw in raw["models"].items():
            models[provider_name] = ModelConfig(
                name=provider_name,
                sdk=model_raw["sdk"],
                model=model_raw["model"],
                api_key_env=model_raw["api_key_env"],
                max_tokens=int(model_raw["max_tokens"]),
                base_url=model_raw.get("base_url"),
            )

            if os.environ.get(model_raw["api_key_env"], "").strip():
                available_providers.add(provider_name)
                logger.info("Provider available: %s", provider_name)
            else:
                logger.info(
                    "Provider skipped (no API key): %s (set %s in .env)",
                    provider_name,
                    model_raw["api_key_env"],
                )
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid settings file {settings_path}: {exc!r}") from exc

    return AppConfig(
        defaults=defaults,
        models=models,
        prompts=prompts,
        available_providers=available_providers,
    )
