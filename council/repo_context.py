"""Contract for scoped repository context attached to provider prompts.

The engine only knows this interface; a concrete source (keyword extraction,
text search, excerpting) is injected by the caller.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from council.models import Phase


@dataclass
class RepoContextRequest:
    prompt: str
    phase: Phase
    round: int
    budget_bytes: int
    max_matches: int
    excerpt_radius_lines: int


@dataclass
class RepoContextRef:
    file: str
    line: int


@dataclass
class RepoContextResult:
    text: str
    refs: list[RepoContextRef] = field(default_factory=list)
    truncated: bool = False


class RepoContextSource(ABC):
    @abstractmethod
    async def build(self, request: RepoContextRequest) -> RepoContextResult:
        """Return context text no larger than ``request.budget_bytes`` (UTF-8)."""
        ...
