"""Pull a JSON object out of raw provider text."""

import json
from typing import Any


def try_parse_json(text: str) -> Any | None:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None


def extract_first_json_object(text: str) -> Any | None:
    """Return the first balanced ``{...}`` block in ``text``, decoded, or None.

    Braces inside string literals (including escaped quotes) are ignored. Only
    the first balanced block is tried.
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        ch = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return try_parse_json(text[start : index + 1])

    return None


def decode_agent_json(raw: str) -> Any | None:
    """Parse ``raw`` directly, falling back to the first embedded object."""
    stripped = raw.strip()
    direct = try_parse_json(stripped)
    if direct is not None:
        return direct
    return extract_first_json_object(stripped)
