"""Pause a round so a human can answer the council's questions in the transcript."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from council.beads import CommentStore
from council.comments import USER_MARKER, find_user_reply_since, max_comment_id
from council.format import system_comment
from council.models import EngineEvent, Phase, UserWaitEvent

logger = logging.getLogger(__name__)

PostComment = Callable[[int | None, Phase | None, str], Awaitable[None]]


class UserInterjection:
    """Bounded wait for a ``**USER**`` reply, with a per-session budget of pauses."""

    def __init__(
        self,
        store: CommentStore,
        issue_id: str,
        wait_seconds: float,
        max_waits: int,
        poll_seconds: float,
        post_comment: PostComment,
        on_event: Callable[[EngineEvent], None] | None = None,
    ) -> None:
        self._store = store
        self._issue_id = issue_id
        self.wait_seconds = wait_seconds
        self.max_waits = max_waits
        self.poll_seconds = poll_seconds
        self._post_comment = post_comment
        self._on_event = on_event
        self.waits_used = 0

    def _emit(self, event: EngineEvent) -> None:
        if self._on_event:
            self._on_event(event)

    def _request_text(self, questions: list[str]) -> str:
        lines = [
            f"Input requested (wait {self.wait_seconds:g}s, {self.waits_used}/{self.max_waits})",
            "",
            f"Please reply with a Beads comment that starts with `{USER_MARKER}` on the first line, "
            "followed by your answer.",
            "",
            "Questions:",
            *[f"- {q}" for q in questions],
        ]
        return system_comment("\n".join(lines))

    async def maybe_wait(self, round_number: int, phase: Phase, questions: list[str]) -> str | None:
        """Wait for a user reply if questions were raised and budget remains.

        Returns:
            The reply body, or None when no pause happened or the wait timed out.
        """
        if not questions or self.wait_seconds <= 0:
            return None
        if self.waits_used >= self.max_waits:
            logger.info(
                "User-wait budget exhausted (%d/%d); continuing without pausing on %d question(s)",
                self.waits_used,
                self.max_waits,
                len(questions),
            )
            return None

        self.waits_used += 1
        self._emit(
            UserWaitEvent(
                "waiting_for_user",
                self._issue_id,
                round_number,
                phase,
                timeout_seconds=self.wait_seconds,
                waits_used=self.waits_used,
                waits_max=self.max_waits,
                questions=list(questions),
            )
        )
        watermark = max_comment_id(await self._store.list_comments(self._issue_id))
        await self._post_comment(round_number, phase, self._request_text(questions))
        logger.info("Waiting up to %gs for user input (after comment %d)", self.wait_seconds, watermark)

        deadline = time.monotonic() + self.wait_seconds
        while time.monotonic() < deadline:
            reply = find_user_reply_since(await self._store.list_comments(self._issue_id), watermark)
            if reply is not None:
                reply_id, message = reply
                logger.info("User reply received in comment %d", reply_id)
                self._emit(
                    UserWaitEvent("user_input_received", self._issue_id, round_number, phase, message=message)
                )
                return message
            await asyncio.sleep(self.poll_seconds)

        await self._post_comment(
            round_number,
            phase,
            system_comment(f"No user response within {self.wait_seconds:g}s; continuing."),
        )
        self._emit(
            UserWaitEvent(
                "user_input_timed_out",
                self._issue_id,
                round_number,
                phase,
                timeout_seconds=self.wait_seconds,
            )
        )
        return None
