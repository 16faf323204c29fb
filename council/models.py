"""Plain dataclasses for the council session, transcript and event feed. No logic."""

from dataclasses import dataclass, field
from typing import Literal

from council.schema import Artifact

Phase = Literal["research", "critique", "synthesis", "oracle"]

PROVIDER_NAMES: tuple[str, ...] = ("codex", "claude", "gemini")
ROUND_PHASES: tuple[Phase, ...] = ("research", "critique", "synthesis")


@dataclass
class Session:
    issue_id: str
    prompt: str
    max_rounds: int
    round: int = 0                 # 0 until the first round starts
    phase: Phase | None = None


@dataclass
class Comment:
    id: int                        # store-assigned, monotonically increasing
    text: str
    author: str | None = None
    issue_id: str | None = None
    created_at: str | None = None


@dataclass
class ArtifactRef:
    artifact: Artifact
    saved_path: str


@dataclass
class PhaseEvent:
    type: Literal["phase_started", "phase_finished"]
    issue_id: str
    round: int
    phase: Phase


@dataclass
class ProviderEvent:
    type: Literal["provider_started", "provider_finished"]
    issue_id: str
    provider: str
    agent_name: str
    round: int
    phase: Phase
    elapsed_ms: int | None = None
    ok: bool | None = None
    error: str | None = None


@dataclass
class UserWaitEvent:
    type: Literal["waiting_for_user", "user_input_received", "user_input_timed_out"]
    issue_id: str
    round: int
    phase: Phase
    timeout_seconds: float | None = None
    waits_used: int | None = None
    waits_max: int | None = None
    questions: list[str] = field(default_factory=list)
    message: str | None = None


@dataclass
class CommentPostedEvent:
    type: Literal["beads_comment_posted"]
    issue_id: str
    round: int | None
    phase: Phase | None
    bytes: int


EngineEvent = PhaseEvent | ProviderEvent | UserWaitEvent | CommentPostedEvent

SessionOutcome = Literal["converged", "max_rounds"]
