"""Council orchestration: research -> critique -> synthesis rounds over a Beads transcript."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import NoReturn

from config.config_loader import DefaultsConfig, PromptsConfig
from council.artifacts import ArtifactStore
from council.beads import CommentStore
from council.chair import ProviderResponse, pick_chair, synthesis_candidates
from council.comments import transcript_json
from council.errors import ConfigurationError, PhaseExhaustionError
from council.format import format_agent_comment, format_elapsed, format_error, system_comment
from council.heartbeat import run_with_heartbeat
from council.interjection import UserInterjection
from council.models import CommentPostedEvent, EngineEvent, Phase, PhaseEvent, Session, SessionOutcome
from council.providers.base import AIProvider, ProviderRequest, run_provider
from council.repo_context import RepoContextRequest, RepoContextSource
from council.schema import AgentResponse

logger = logging.getLogger(__name__)

EventCallback = Callable[[EngineEvent], None]


@dataclass
class EngineSettings:
    max_rounds: int = 5
    heartbeat_seconds: float = 15
    beads_heartbeat_seconds: float = 60
    beads_heartbeat_max: int = 5
    timeout_seconds: float = 600
    user_wait_seconds: float = 60
    max_user_waits: int = 2
    user_poll_seconds: float = 2
    repo_context_enabled: bool = True
    repo_context_budget_bytes: int = 12_000
    repo_context_max_matches: int = 40
    repo_context_excerpt_radius_lines: int = 2

    def __post_init__(self) -> None:
        positive = ("max_rounds", "beads_heartbeat_max", "timeout_seconds", "user_poll_seconds")
        non_negative = (
            "heartbeat_seconds",
            "beads_heartbeat_seconds",
            "user_wait_seconds",
            "max_user_waits",
            "repo_context_budget_bytes",
            "repo_context_max_matches",
            "repo_context_excerpt_radius_lines",
        )
        for name in positive:
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive, got {getattr(self, name)!r}")
        for name in non_negative:
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must be >= 0, got {getattr(self, name)!r}")

    @classmethod
    def from_defaults(cls, defaults: DefaultsConfig, **overrides: object) -> "EngineSettings":
        """Build settings from config defaults; ``None`` overrides are ignored."""
        values = {
            "max_rounds": defaults.max_rounds,
            "heartbeat_seconds": defaults.heartbeat_seconds,
            "beads_heartbeat_seconds": defaults.beads_heartbeat_seconds,
            "beads_heartbeat_max": defaults.beads_heartbeat_max,
            "timeout_seconds": defaults.timeout_seconds,
            "user_wait_seconds": defaults.user_wait_seconds,
            "max_user_waits": defaults.max_user_waits,
            "user_poll_seconds": defaults.user_poll_seconds,
            "repo_context_enabled": defaults.repo_context_enabled,
            "repo_context_budget_bytes": defaults.repo_context_budget_bytes,
            "repo_context_max_matches": defaults.repo_context_max_matches,
            "repo_context_excerpt_radius_lines": defaults.repo_context_excerpt_radius_lines,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)  # type: ignore[arg-type]


class CouncilEngine:
    """Drives one council session per ``run_session`` call.

    Providers are consulted sequentially in the order of the ``providers``
    mapping; that order is also the tie-break order for chair selection. A
    provider failure is recorded in the transcript and skipped; a phase in which
    every provider fails aborts the session with PhaseExhaustionError.
    """

    def __init__(
        self,
        store: CommentStore,
        providers: dict[str, AIProvider],
        prompts: PromptsConfig,
        settings: EngineSettings,
        artifact_store: ArtifactStore,
        repo_context: RepoContextSource | None = None,
        on_event: EventCallback | None = None,
    ) -> None:
        if not providers:
            raise ConfigurationError("At least one provider is required")
        self._store = store
        self._providers = providers
        self._prompts = prompts
        self._settings = settings
        self._artifacts = artifact_store
        self._repo_context = repo_context
        self._on_event = on_event

    def _emit(self, event: EngineEvent) -> None:
        if self._on_event:
            self._on_event(event)

    async def _post(self, session: Session, round_number: int | None, phase: Phase | None, text: str) -> None:
        await self._store.add_comment(session.issue_id, text)
        self._emit(
            CommentPostedEvent(
                "beads_comment_posted",
                session.issue_id,
                round_number,
                phase,
                bytes=len(text.encode("utf-8")),
            )
        )

    async def _start_phase(self, session: Session, phase: Phase, banner: str) -> tuple[str, str]:
        """Announce the phase and return ``(transcript, repo_context)`` for it."""
        session.phase = phase
        self._emit(PhaseEvent("phase_started", session.issue_id, session.round, phase))
        await self._post(session, session.round, phase, system_comment(banner))

        transcript = transcript_json(await self._store.list_comments(session.issue_id))

        repo_context = ""
        if self._settings.repo_context_enabled and self._repo_context is not None:
            result = await self._repo_context.build(
                RepoContextRequest(
                    prompt=session.prompt,
                    phase=phase,
                    round=session.round,
                    budget_bytes=self._settings.repo_context_budget_bytes,
                    max_matches=self._settings.repo_context_max_matches,
                    excerpt_radius_lines=self._settings.repo_context_excerpt_radius_lines,
                )
            )
            repo_context = result.text
            logger.debug("Repo context for %s: %d refs, truncated=%s", phase, len(result.refs), result.truncated)
        return transcript, repo_context

    def _finish_phase(self, session: Session, phase: Phase) -> None:
        self._emit(PhaseEvent("phase_finished", session.issue_id, session.round, phase))

    async def _call(
        self,
        session: Session,
        provider_name: str,
        agent_name: str,
        phase: Phase,
        transcript: str,
        repo_context: str,
    ) -> AgentResponse:
        provider = self._providers[provider_name]
        request = ProviderRequest(
            agent_name=agent_name,
            round=session.round,
            phase=phase,
            prompt=session.prompt,
            transcript=transcript,
            repo_context=repo_context,
            timeout_sec=self._settings.timeout_seconds,
        )

        async def beads_heartbeat(elapsed_ms: int) -> None:
            await self._post(
                session,
                session.round,
                phase,
                system_comment(f"`{provider_name}` still running ({format_elapsed(elapsed_ms)})"),
            )

        return await run_with_heartbeat(
            lambda: run_provider(provider, request, self._prompts),
            issue_id=session.issue_id,
            provider=provider_name,
            agent_name=agent_name,
            round_number=session.round,
            phase=phase,
            heartbeat_seconds=self._settings.heartbeat_seconds,
            beads_heartbeat_seconds=self._settings.beads_heartbeat_seconds,
            beads_heartbeat_max=self._settings.beads_heartbeat_max,
            on_beads_heartbeat=beads_heartbeat,
            on_event=self._on_event,
        )

    async def _record(
        self, session: Session, provider_name: str, agent_name: str, phase: Phase, response: AgentResponse
    ) -> None:
        refs = await self._artifacts.persist(session.issue_id, session.round, phase, agent_name, response.artifacts)
        await self._post(session, session.round, phase, format_agent_comment(provider_name, response, refs))

    async def _fan_out(self, session: Session, phase: Phase, transcript: str, repo_context: str) -> list[ProviderResponse]:
        """Ask every provider in turn; failures are recorded and skipped."""
        responses: list[ProviderResponse] = []
        for provider_name in self._providers:
            await self._post(session, session.round, phase, system_comment(f"Running `{provider_name}` ({phase})"))
            try:
                response = await self._call(session, provider_name, provider_name, phase, transcript, repo_context)
            except Exception as exc:
                logger.warning("Provider %s failed in %s, round %d: %s", provider_name, phase, session.round, exc)
                await self._post(
                    session,
                    session.round,
                    phase,
                    system_comment(f"Provider failure: `{provider_name}` ({phase})\n\n```\n{format_error(exc)}\n```"),
                )
                continue
            await self._record(session, provider_name, provider_name, phase, response)
            responses.append(ProviderResponse(provider_name, response))

        if not responses:
            await self._abort(session, phase)
        if len(responses) < len(self._providers):
            logger.warning(
                "Only %d/%d providers responded in %s, round %d",
                len(responses),
                len(self._providers),
                phase,
                session.round,
            )
        return responses

    async def _abort(self, session: Session, phase: Phase) -> NoReturn:
        await self._post(
            session,
            session.round,
            phase,
            system_comment(f"No providers produced a {phase} response; aborting."),
        )
        raise PhaseExhaustionError(phase, session.round)

    async def _synthesize(
        self,
        session: Session,
        candidates: list[str],
        transcript: str,
        repo_context: str,
    ) -> ProviderResponse:
        """Try chair candidates in order until one produces a synthesis."""
        for candidate in candidates:
            await self._post(
                session, session.round, "synthesis", system_comment(f"Running chair `{candidate}` (synthesis)")
            )
            try:
                response = await self._call(
                    session, candidate, f"{candidate}-chair", "synthesis", transcript, repo_context
                )
            except Exception as exc:
                logger.warning("Chair candidate %s failed in round %d: %s", candidate, session.round, exc)
                await self._post(
                    session,
                    session.round,
                    "synthesis",
                    system_comment(f"Chair failure: `{candidate}` (synthesis)\n\n```\n{format_error(exc)}\n```"),
                )
                continue
            await self._record(session, candidate, f"{candidate}-chair", "synthesis", response)
            return ProviderResponse(candidate, response)

        await self._abort(session, "synthesis")

    async def _run_round(self, session: Session, interjection: UserInterjection) -> bool:
        """Run one round. Returns True when the council converged."""
        round_number = session.round

        transcript, repo_context = await self._start_phase(
            session, "research", f"Round {round_number} starting (research)"
        )
        research = await self._fan_out(session, "research", transcript, repo_context)
        chair = pick_chair(research)
        logger.info("Round %d chair: %s", round_number, chair)
        self._finish_phase(session, "research")
        await interjection.maybe_wait(
            round_number, "research", [q for r in research for q in r.response.questions_for_user]
        )

        transcript, repo_context = await self._start_phase(session, "critique", f"Chair selected: `{chair}` (critique)")
        critique = await self._fan_out(session, "critique", transcript, repo_context)
        should_continue = any(r.response.need_another_round for r in critique)
        self._finish_phase(session, "critique")
        critique_questions = [q for r in critique for q in r.response.questions_for_user]
        if critique_questions:
            should_continue = True
        await interjection.maybe_wait(round_number, "critique", critique_questions)

        verdict = "CONTINUE" if should_continue else "DONE"
        transcript, repo_context = await self._start_phase(
            session, "synthesis", f"Round {round_number} synthesis ({verdict})"
        )
        synthesis = await self._synthesize(
            session, synthesis_candidates(chair, critique), transcript, repo_context
        )
        self._finish_phase(session, "synthesis")

        synthesis_questions = synthesis.response.questions_for_user
        if synthesis_questions:
            should_continue = True
            await interjection.maybe_wait(round_number, "synthesis", synthesis_questions)

        return not should_continue

    async def run_session(self, issue_id: str, prompt: str) -> SessionOutcome:
        """Run rounds until the council converges or ``max_rounds`` is reached.

        Raises:
            ConfigurationError: If the prompt is empty.
            PhaseExhaustionError: If every provider fails within a phase.
        """
        if not prompt.strip():
            raise ConfigurationError("Prompt must not be empty")

        session = Session(issue_id=issue_id, prompt=prompt, max_rounds=self._settings.max_rounds)

        async def post_for_interjection(round_number: int | None, phase: Phase | None, text: str) -> None:
            await self._post(session, round_number, phase, text)

        interjection = UserInterjection(
            self._store,
            issue_id,
            wait_seconds=self._settings.user_wait_seconds,
            max_waits=self._settings.max_user_waits,
            poll_seconds=self._settings.user_poll_seconds,
            post_comment=post_for_interjection,
            on_event=self._on_event,
        )

        for round_number in range(1, session.max_rounds + 1):
            session.round = round_number
            logger.info("Starting round %d/%d with %d providers", round_number, session.max_rounds, len(self._providers))
            if await self._run_round(session, interjection):
                await self._post(
                    session, round_number, None, system_comment(f"Session converged after round {round_number}.")
                )
                logger.info("Session %s converged after round %d", issue_id, round_number)
                return "converged"

        await self._post(session, None, None, system_comment("Max rounds reached; stopping."))
        logger.info("Session %s reached max rounds (%d)", issue_id, session.max_rounds)
        return "max_rounds"
