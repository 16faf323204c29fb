"""Persist agent artifacts and hand back saved-path references."""

import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path

from council.models import ArtifactRef
from council.schema import Artifact

logger = logging.getLogger(__name__)

DEFAULT_ARTIFACTS_DIR = Path(".council") / "artifacts"


def _slug(text: str, max_len: int = 80) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^a-z0-9._-]+", "-", text.strip().lower())
    slug = re.sub(r"-+", "-", slug).strip("-")[:max_len]
    if not slug.strip("."):
        return ""
    return slug


def default_extension(artifact_type: str) -> str:
    kind = artifact_type.lower()
    if "mermaid" in kind:
        return "mmd"
    if "markdown" in kind:
        return "md"
    if "json" in kind:
        return "json"
    if "svg" in kind:
        return "svg"
    if "html" in kind:
        return "html"
    return "txt"


def artifact_filename(artifact: Artifact, index: int) -> str:
    """Pick a file name: the sanitized suggestion, else ``NN-<title>.<ext>``."""
    suggested = _slug(artifact.suggested_filename) if artifact.suggested_filename else ""
    if suggested:
        return suggested if "." in suggested else f"{suggested}.{default_extension(artifact.type)}"
    title = _slug(artifact.title) or "artifact"
    return f"{index:02d}-{title}.{default_extension(artifact.type)}"


class ArtifactStore(ABC):
    """Takes ownership of artifacts and returns where each one was saved."""

    @abstractmethod
    async def persist(
        self,
        issue_id: str,
        round_number: int,
        phase: str,
        agent_name: str,
        artifacts: list[Artifact],
    ) -> list[ArtifactRef]:
        ...


class FileArtifactStore(ArtifactStore):
    """Write artifacts under ``<base>/<issue>/round-<n>/<phase>/<agent>/``."""

    def __init__(self, base_dir: Path = DEFAULT_ARTIFACTS_DIR) -> None:
        self.base_dir = base_dir

    def issue_dir(self, issue_id: str) -> Path:
        return self.base_dir / issue_id

    async def persist(
        self,
        issue_id: str,
        round_number: int,
        phase: str,
        agent_name: str,
        artifacts: list[Artifact],
    ) -> list[ArtifactRef]:
        if not artifacts:
            return []

        target_dir = self.issue_dir(issue_id) / f"round-{round_number}" / phase / (_slug(agent_name) or "agent")
        target_dir.mkdir(parents=True, exist_ok=True)

        refs: list[ArtifactRef] = []
        for index, artifact in enumerate(artifacts, start=1):
            path = target_dir / artifact_filename(artifact, index)
            path.write_text(artifact.content, encoding="utf-8")
            refs.append(ArtifactRef(artifact=artifact, saved_path=str(path)))

        logger.info("Saved %d artifact(s) from %s to %s", len(refs), agent_name, target_dir)
        return refs
