"""Parsing helpers for the Beads comment transcript."""

import json
from dataclasses import asdict
from typing import Any

from council.models import Comment

USER_MARKER = "**USER**"


def parse_comments(value: Any) -> list[Comment]:
    """Convert raw ``bd comments --json`` output into Comment records.

    Entries without an integer id or a string text are skipped.
    """
    if not isinstance(value, list):
        return []
    comments: list[Comment] = []
    for item in value:
        if not isinstance(item, dict):
            continue
        comment_id = item.get("id")
        text = item.get("text")
        if isinstance(comment_id, bool) or not isinstance(comment_id, int):
            continue
        if not isinstance(text, str):
            continue
        comments.append(
            Comment(
                id=comment_id,
                text=text,
                author=item["author"] if isinstance(item.get("author"), str) else None,
                issue_id=item["issue_id"] if isinstance(item.get("issue_id"), str) else None,
                created_at=item["created_at"] if isinstance(item.get("created_at"), str) else None,
            )
        )
    return comments


def max_comment_id(comments: list[Comment]) -> int:
    return max((c.id for c in comments), default=0)


def extract_user_message(text: str) -> str | None:
    """Return the reply body if the first line carries the user marker."""
    normalized = text.replace("\r\n", "\n").strip()
    if not normalized:
        return None
    first_line, _, rest = normalized.partition("\n")
    if USER_MARKER not in first_line:
        return None
    return rest.strip()


def find_user_reply_since(comments: list[Comment], after_id: int) -> tuple[int, str] | None:
    """Return ``(id, message)`` of the first user reply newer than ``after_id``."""
    for comment in comments:
        if comment.id <= after_id:
            continue
        message = extract_user_message(comment.text)
        if not message:
            continue
        return comment.id, message
    return None


def format_user_reply(message: str) -> str:
    return f"{USER_MARKER}\n{message.strip()}\n"


def transcript_json(comments: list[Comment]) -> str:
    """Serialize comments as the JSON transcript handed to providers."""
    return json.dumps([asdict(c) for c in comments], ensure_ascii=False)
