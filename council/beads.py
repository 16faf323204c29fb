"""Comment store contract and the Beads (`bd` CLI) implementation."""

import asyncio
import json
import logging
import secrets
import time
from abc import ABC, abstractmethod
from pathlib import Path

from council.comments import parse_comments
from council.errors import BeadsError
from council.models import Comment

logger = logging.getLogger(__name__)

_DEFAULT_TMP_DIR = Path(".council") / "tmp"


class CommentStore(ABC):
    """Append-only issue transcript. Comments are never edited or removed."""

    @abstractmethod
    async def create_issue(
        self,
        title: str,
        description: str,
        labels: list[str] | None = None,
        priority: str | None = None,
    ) -> str:
        """Create an issue and return its id."""
        ...

    @abstractmethod
    async def add_comment(self, issue_id: str, text: str) -> None:
        ...

    @abstractmethod
    async def list_comments(self, issue_id: str) -> list[Comment]:
        """Return every comment on the issue, oldest first."""
        ...


class BeadsStore(CommentStore):
    """Drive a Beads database through the ``bd`` executable."""

    def __init__(
        self,
        db_path: Path | None = None,
        executable: str = "bd",
        tmp_dir: Path = _DEFAULT_TMP_DIR,
    ) -> None:
        self._db_path = db_path
        self._executable = executable
        self._tmp_dir = tmp_dir

    async def _run(self, *args: str) -> str:
        cmd = [self._executable]
        if self._db_path is not None:
            cmd += ["--db", str(self._db_path)]
        cmd += list(args)
        logger.debug("Running %s", " ".join(cmd[:4]))

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise BeadsError(f"`{self._executable}` not found on PATH") from exc

        stdout_bytes, stderr_bytes = await proc.communicate()
        stdout = stdout_bytes.decode("utf-8", errors="replace")
        stderr = stderr_bytes.decode("utf-8", errors="replace")
        if proc.returncode != 0:
            raise BeadsError(
                f"`{self._executable} {args[0]}` exited with code {proc.returncode}",
                stdout=stdout,
                stderr=stderr,
            )
        return stdout

    async def create_issue(
        self,
        title: str,
        description: str,
        labels: list[str] | None = None,
        priority: str | None = None,
        acceptance: str | None = None,
        issue_type: str | None = None,
    ) -> str:
        args = ["create", title, "-d", description]
        if acceptance:
            args += ["--acceptance", acceptance]
        if labels:
            args += ["-l", ",".join(labels)]
        if priority:
            args += ["-p", priority]
        if issue_type:
            args += ["-t", issue_type]
        args.append("--json")

        stdout = await self._run(*args)
        try:
            issue_id = json.loads(stdout).get("id")
        except (json.JSONDecodeError, AttributeError) as exc:
            raise BeadsError(f"bd create returned non-JSON output: {stdout}", stdout=stdout) from exc
        if not issue_id:
            raise BeadsError(f"bd create did not return an id: {stdout}", stdout=stdout)
        logger.info("Created issue %s", issue_id)
        return str(issue_id)

    async def add_comment(self, issue_id: str, text: str) -> None:
        # Comment bodies go through a file so multi-line markdown survives argv.
        self._tmp_dir.mkdir(parents=True, exist_ok=True)
        tmp_path = self._tmp_dir / f"beads-comment-{int(time.time() * 1000)}-{secrets.token_hex(4)}.md"
        tmp_path.write_text(text, encoding="utf-8")
        try:
            await self._run("comments", "add", issue_id, "-f", str(tmp_path))
        finally:
            tmp_path.unlink(missing_ok=True)

    async def list_comments(self, issue_id: str) -> list[Comment]:
        stdout = await self._run("comments", issue_id, "--json")
        try:
            raw = json.loads(stdout) if stdout.strip() else []
        except json.JSONDecodeError as exc:
            raise BeadsError(f"bd comments returned non-JSON output for {issue_id}", stdout=stdout) from exc
        return parse_comments(raw)

    async def add_dependency(self, issue_id: str, depends_on_id: str, dep_type: str = "blocks") -> None:
        await self._run("dep", "add", issue_id, depends_on_id, "-t", dep_type)
