"""Normalize loosely-typed agent output into one canonical AgentResponse.

Providers are unreliable about types: lists arrive as bullet strings, scores as
strings, booleans as words. Coercion is lenient ("garbage in, sanitized in"):
malformed artifacts are dropped and unknown words fall back to defaults rather
than rejecting the whole response. Only a value that matches neither the current
nor the legacy shape raises SchemaError.
"""

import logging
import math
from typing import Any

from pydantic import ValidationError

from council.errors import SchemaError
from council.schema import AgentResponse, LegacyAgentResponse

logger = logging.getLogger(__name__)

_LIST_FIELDS = ("recommendations", "risks", "open_questions", "questions_for_user", "assumptions")

_TRUTHY_WORDS = frozenset({"true", "yes", "y", "continue", "cont"})
_FALSY_WORDS = frozenset({"false", "no", "n", "done", "stop"})

_LEGACY_SECTIONS = (
    ("recommendations", "Recommendations"),
    ("risks", "Risks"),
    ("open_questions", "Open questions"),
)

CHAIR_SCORE_MIN = 0.0
CHAIR_SCORE_MAX = 10.0


def coerce_string_list(value: Any) -> list[str]:
    """Accept a list of strings or a single (possibly bulleted) string."""
    if isinstance(value, list):
        return [str(item) for item in value if item is not None]
    if not isinstance(value, str):
        return [] if value is None else [str(value)]

    text = value.replace("\r\n", "\n").strip()
    if not text:
        return []
    bullets = [
        line.strip()[1:].strip()
        for line in text.split("\n")
        if line.strip().startswith(("-", "*"))
    ]
    bullets = [b for b in bullets if b]
    return bullets if bullets else [text]


def coerce_chair_score(value: Any) -> float:
    """Parse a number or numeric string and clamp it into [0, 10]; 0 on failure."""
    if isinstance(value, bool):
        score = 0.0
    elif isinstance(value, (int, float)):
        score = float(value)
    elif isinstance(value, str):
        try:
            score = float(value.strip())
        except ValueError:
            score = 0.0
    else:
        score = 0.0
    if math.isnan(score):
        score = 0.0
    return min(CHAIR_SCORE_MAX, max(CHAIR_SCORE_MIN, score))


def coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUTHY_WORDS:
            return True
        if word in _FALSY_WORDS:
            return False
    return False


def _as_text(value: Any) -> str:
    return "" if value is None else str(value)


def coerce_artifacts(value: Any) -> list[dict[str, Any]]:
    """Keep artifacts that still have a type and title after string coercion."""
    if not isinstance(value, list):
        return []
    kept: list[dict[str, Any]] = []
    for entry in value:
        if not isinstance(entry, dict):
            continue
        artifact = {
            "type": _as_text(entry.get("type")).strip(),
            "title": _as_text(entry.get("title")).strip(),
            "content": _as_text(entry.get("content")),
        }
        if not artifact["type"] or not artifact["title"]:
            logger.debug("Dropping artifact without type/title: %r", entry)
            continue
        for optional in ("mime", "suggested_filename"):
            text = _as_text(entry.get(optional)).strip()
            if text:
                artifact[optional] = text
        kept.append(artifact)
    return kept


def coerce_fields(value: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``value`` with loosely-typed fields coerced."""
    coerced = dict(value)
    for name in _LIST_FIELDS:
        if name in coerced:
            coerced[name] = coerce_string_list(coerced[name])
    coerced["chair_score"] = coerce_chair_score(coerced.get("chair_score"))
    coerced["need_another_round"] = coerce_bool(coerced.get("need_another_round"))
    coerced["artifacts"] = coerce_artifacts(coerced.get("artifacts"))
    if coerced.get("why_continue") is None:
        coerced["why_continue"] = ""
    if coerced.get("chair_reason") is None:
        coerced["chair_reason"] = ""
    return coerced


def legacy_to_current(legacy: LegacyAgentResponse) -> AgentResponse:
    """Convert a validated v1 response into the current shape."""
    parts = [legacy.summary]
    for field_name, label in _LEGACY_SECTIONS:
        items = [item.strip() for item in getattr(legacy, field_name) if item.strip()]
        if items:
            parts.append(f"{label}:\n" + "\n".join(f"- {item}" for item in items))

    return AgentResponse(
        agent=legacy.agent,
        round=legacy.round,
        phase=legacy.phase,
        message="\n\n".join(parts),
        questions_for_user=[],
        assumptions=[],
        need_another_round=legacy.need_another_round,
        why_continue=legacy.why_continue,
        chair_score=legacy.chair_score,
        chair_reason=legacy.chair_reason,
        artifacts=legacy.artifacts,
    )


def normalize_response(value: Any) -> AgentResponse:
    """Turn a decoded JSON value into an AgentResponse.

    Raises:
        SchemaError: If the value matches neither the current nor the legacy
            shape. Carries the current-shape validation error.
    """
    if isinstance(value, dict):
        candidate: Any = coerce_fields(value)
    else:
        candidate = value

    try:
        return AgentResponse.model_validate(candidate)
    except ValidationError as current_error:
        try:
            legacy = LegacyAgentResponse.model_validate(candidate)
        except ValidationError:
            raise SchemaError(current_error) from current_error
        logger.debug("Agent %s answered with the legacy response shape", legacy.agent)
        return legacy_to_current(legacy)
