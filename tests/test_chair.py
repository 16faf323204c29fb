"""Tests for council/chair.py."""

from council.chair import DEFAULT_CHAIR, ProviderResponse, pick_chair, synthesis_candidates
from council.schema import AgentResponse


def _scored(provider: str, score: float) -> ProviderResponse:
    return ProviderResponse(
        provider,
        AgentResponse(agent=provider, round=1, phase="research", message="m", chair_score=score),
    )


def test_highest_score_wins():
    assert pick_chair([_scored("codex", 3), _scored("claude", 8), _scored("gemini", 6)]) == "claude"


def test_tie_goes_to_earlier_provider():
    assert pick_chair([_scored("codex", 7), _scored("claude", 9), _scored("gemini", 9)]) == "claude"
    assert pick_chair([_scored("codex", 0), _scored("claude", 0)]) == "codex"


def test_default_chair_when_no_responses():
    assert pick_chair([]) == DEFAULT_CHAIR == "codex"


def test_synthesis_candidates_chair_first_without_duplicates():
    critique = [_scored("codex", 4), _scored("claude", 9), _scored("gemini", 6)]
    assert synthesis_candidates("codex", critique) == ["codex", "claude", "gemini"]


def test_synthesis_candidates_chair_missing_from_critique():
    assert synthesis_candidates("gemini", [_scored("codex", 2), _scored("claude", 5)]) == ["gemini", "claude", "codex"]
