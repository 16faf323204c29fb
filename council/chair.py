"""Chair (lead agent) selection from self-reported confidence scores."""

from dataclasses import dataclass

from council.schema import AgentResponse

DEFAULT_CHAIR = "codex"


@dataclass
class ProviderResponse:
    provider: str
    response: AgentResponse


def pick_chair(responses: list[ProviderResponse]) -> str:
    """Highest ``chair_score`` wins; ties go to the earlier provider.

    ``responses`` must be in provider-enumeration order; ``sorted`` is stable.
    """
    ranked = sorted(responses, key=lambda r: r.response.chair_score, reverse=True)
    return ranked[0].provider if ranked else DEFAULT_CHAIR


def synthesis_candidates(chair: str, critique_responses: list[ProviderResponse]) -> list[str]:
    """Chair first, then critique providers by score, without duplicates."""
    ranked = sorted(critique_responses, key=lambda r: r.response.chair_score, reverse=True)
    candidates = [chair] + [r.provider for r in ranked]
    return list(dict.fromkeys(candidates))
