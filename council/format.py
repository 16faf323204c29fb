"""Markdown rendering for transcript comments, elapsed times and errors."""

from council.models import ArtifactRef
from council.schema import AgentResponse


def _md(text: str) -> str:
    return text.replace("\r\n", "\n")


def system_comment(body: str) -> str:
    """Wrap a message as a ``**SYSTEM**`` transcript comment."""
    return f"---\n**SYSTEM** {body}\n---"


def format_elapsed(elapsed_ms: float) -> str:
    """Render milliseconds as ``42s`` or ``3m7s``."""
    seconds = int(elapsed_ms // 1000)
    if seconds < 60:
        return f"{seconds}s"
    return f"{seconds // 60}m{seconds % 60}s"


def _as_text(value: object) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value if isinstance(value, str) else ""


def format_error(exc: BaseException | object) -> str:
    """Summarize an error from whichever of its fields are populated.

    Sources, in priority order: short message, full message, stderr, stdout.
    Each is included only when non-empty.
    """
    sources: list[str] = []
    short = _as_text(getattr(exc, "short_message", None))
    message = _as_text(getattr(exc, "message", None)) or str(exc)
    stderr = _as_text(getattr(exc, "stderr", None))
    stdout = _as_text(getattr(exc, "stdout", None))

    for text in (short, message):
        if text.strip() and text.strip() not in sources:
            sources.append(text.strip())
    if stderr.strip():
        sources.append(f"stderr:\n{stderr.strip()}")
    if stdout.strip():
        sources.append(f"stdout:\n{stdout.strip()}")

    combined = "\n\n".join(sources).strip()
    return combined or type(exc).__name__


def format_agent_comment(provider: str, response: AgentResponse, artifact_refs: list[ArtifactRef]) -> str:
    """Render a normalized agent response as a transcript comment."""
    lines: list[str] = [
        f"**Agent**: `{_md(response.agent)}`  **Provider**: `{provider}`",
        f"**Round**: `{response.round}`  **Phase**: `{response.phase}`",
        "",
        _md(response.message).strip() or "(empty)",
    ]

    if response.questions_for_user:
        lines += ["", "**Questions For User**"]
        lines += [f"- {_md(q)}" for q in response.questions_for_user]

    if response.assumptions:
        lines += ["", "**Assumptions**"]
        lines += [f"- {_md(a)}" for a in response.assumptions]

    score = f"{response.chair_score:g}"
    verdict = "CONTINUE" if response.need_another_round else "DONE"
    lines += [
        "",
        f"**Chair Score**: `{score}` — {_md(response.chair_reason)}",
        f"**Continue?**: `{verdict}` {_md(response.why_continue)}".rstrip(),
    ]

    if artifact_refs:
        lines += ["", "**Artifacts**"]
        for ref in artifact_refs:
            lines.append(f"- `{ref.artifact.type}`: {_md(ref.artifact.title)} → `{ref.saved_path}`")

    return "\n".join(lines)
