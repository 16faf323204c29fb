"""Pydantic shapes for agent output: the current message-based response and the legacy one."""

from typing import Literal

from pydantic import BaseModel, Field

PhaseName = Literal["research", "critique", "synthesis", "oracle"]


class Artifact(BaseModel):
    type: str = Field(min_length=1)
    title: str = Field(min_length=1)
    content: str
    mime: str | None = None
    suggested_filename: str | None = None


class AgentResponse(BaseModel):
    """Canonical (v2) agent response."""

    agent: str = Field(min_length=1)
    round: int = Field(ge=1)
    phase: PhaseName
    message: str
    questions_for_user: list[str] = Field(default_factory=list)
    assumptions: list[str] = Field(default_factory=list)
    need_another_round: bool = False
    why_continue: str = ""
    chair_score: float = Field(default=0, ge=0, le=10)
    chair_reason: str = ""
    artifacts: list[Artifact] = Field(default_factory=list)


class LegacyAgentResponse(BaseModel):
    """v1 response: summary/recommendations/risks/open_questions instead of message."""

    agent: str = Field(min_length=1)
    round: int = Field(ge=1)
    phase: PhaseName
    summary: str
    recommendations: list[str]
    risks: list[str]
    open_questions: list[str]
    need_another_round: bool = False
    why_continue: str = ""
    chair_score: float = Field(default=0, ge=0, le=10)
    chair_reason: str = ""
    artifacts: list[Artifact] = Field(default_factory=list)


# Keys every provider is told to emit; rendered into the agent prompt.
RESPONSE_KEYS: tuple[str, ...] = (
    "agent",
    "round",
    "phase",
    "message",
    "questions_for_user",
    "assumptions",
    "need_another_round",
    "why_continue",
    "chair_score",
    "chair_reason",
    "artifacts",
)
