"""Provider probes: one short research-phase call per provider before a real session."""

import logging
import time
from dataclasses import dataclass

from config.config_loader import PromptsConfig
from council.format import format_error
from council.providers.base import AIProvider, ProviderRequest, run_provider
from council.schema import AgentResponse

logger = logging.getLogger(__name__)

DEFAULT_PROBE_PROMPT = "Say OK and list 3 bullets."
DEFAULT_PROBE_TIMEOUT_SEC = 30.0


@dataclass
class ProbeResult:
    provider: str
    ok: bool
    ms: int
    error: str | None = None
    response: AgentResponse | None = None

    def to_dict(self) -> dict:
        data: dict = {"provider": self.provider, "ok": self.ok, "ms": self.ms}
        if self.error is not None:
            data["error"] = self.error
        if self.response is not None:
            data["response"] = self.response.model_dump()
        return data


async def _probe_one(
    provider: AIProvider,
    prompts: PromptsConfig,
    prompt: str,
    timeout_sec: float,
) -> ProbeResult:
    start = time.monotonic()
    request = ProviderRequest(
        agent_name=f"{provider.name()}-probe",
        round=1,
        phase="research",
        prompt=prompt,
        transcript="[]",
        timeout_sec=timeout_sec,
    )
    try:
        response = await run_provider(provider, request, prompts)
    except Exception as exc:
        logger.warning("Probe failed for %s: %s", provider.name(), exc)
        return ProbeResult(provider.name(), False, int((time.monotonic() - start) * 1000), error=format_error(exc))
    return ProbeResult(provider.name(), True, int((time.monotonic() - start) * 1000), response=response)


async def probe_providers(
    providers: dict[str, AIProvider],
    prompts: PromptsConfig,
    prompt: str = DEFAULT_PROBE_PROMPT,
    timeout_sec: float = DEFAULT_PROBE_TIMEOUT_SEC,
) -> list[ProbeResult]:
    """Probe each provider in turn, the same way the engine runs them.

    Returns:
        One ProbeResult per provider, in mapping order. Never raises for a
        provider failure.
    """
    results: list[ProbeResult] = []
    for provider in providers.values():
        results.append(await _probe_one(provider, prompts, prompt, timeout_sec))
    return results
