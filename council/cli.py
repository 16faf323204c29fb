"""Click CLI: creates council issues, runs sessions, and drives plan mode."""

import asyncio
import json
import logging
import shutil
import sys
from typing import NoReturn

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from config.config_loader import AppConfig, load_config
from council.artifacts import FileArtifactStore
from council.beads import BeadsStore
from council.comments import format_user_reply, max_comment_id
from council.engine import CouncilEngine, EngineSettings
from council.errors import BeadsError, ConfigurationError, CouncilError, PlanError
from council.format import format_error, system_comment
from council.models import PROVIDER_NAMES
from council.output import EventPrinter, print_plan, print_transcript
from council.plan import (
    PLAN_ARTIFACT_TYPE,
    apply_plan,
    find_latest_plan_file,
    load_plan_file,
    parse_issue_plan_artifact,
    run_plan_mode,
)
from council.probe import DEFAULT_PROBE_PROMPT, DEFAULT_PROBE_TIMEOUT_SEC, probe_providers
from council.providers.anthropic import AnthropicProvider
from council.providers.base import AIProvider
from council.providers.gemini import GeminiProvider
from council.providers.openai_provider import OpenAIProvider
from council.repo_context import RepoContextSource

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "codex": OpenAIProvider,
    "claude": AnthropicProvider,
    "gemini": GeminiProvider,
}


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _load_config_or_exit() -> AppConfig:
    try:
        return load_config()
    except (FileNotFoundError, ConfigurationError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)


def _parse_provider_names(providers_arg: str | None) -> list[str]:
    """Returns requested provider names in council seat order. Unknown names exit with an error."""
    if not providers_arg:
        return list(PROVIDER_NAMES)
    names = list(dict.fromkeys(n.strip() for n in providers_arg.split(",") if n.strip()))
    unknown = [n for n in names if n not in PROVIDER_CLASSES]
    if unknown:
        console.print(
            f"[bold red]Error:[/bold red] Unknown provider(s): {', '.join(unknown)}. "
            f"Choose from: {', '.join(PROVIDER_NAMES)}"
        )
        sys.exit(1)
    return [n for n in PROVIDER_NAMES if n in names]


def _build_all_providers(config: AppConfig, names: list[str]) -> dict[str, AIProvider]:
    """Build the requested providers that have API keys. Order follows ``names``."""
    providers: dict[str, AIProvider] = {}
    for name in names:
        if name not in config.available_providers:
            logger.warning("Provider '%s' has no API key, skipping", name)
            continue
        if name not in config.models:
            logger.warning("Provider '%s' missing from settings, skipping", name)
            continue
        try:
            providers[name] = PROVIDER_CLASSES[name](config.models[name])
        except Exception as exc:
            logger.warning("Failed to instantiate provider '%s': %s", name, exc)
    return providers


def _providers_or_exit(config: AppConfig, providers_arg: str | None) -> dict[str, AIProvider]:
    providers = _build_all_providers(config, _parse_provider_names(providers_arg))
    if not providers:
        console.print("[bold red]Error:[/bold red] No providers available. Check API keys in .env.")
        sys.exit(1)
    return providers


def _issue_title(prompt: str, max_len: int = 80) -> str:
    first_line = prompt.strip().splitlines()[0]
    if len(first_line) <= max_len:
        return f"Council: {first_line}"
    return f"Council: {first_line[: max_len - 3]}..."


def _fail(exc: BaseException) -> NoReturn:
    console.print(f"[bold red]Error:[/bold red] {escape(format_error(exc))}")
    sys.exit(1)


@click.group()
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def main(verbose: bool) -> None:
    """AI Council -- multi-provider deliberation recorded on a Beads issue.

    \b
    Examples:
      council consult "Should the cache be write-through or write-back?"
      council reply bd-a1b2 "Assume a single region."
      council watch bd-a1b2
      council plan bd-a1b2 && council apply-plan bd-a1b2
    """
    # Model responses can carry characters the Windows console codepage cannot render.
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)


async def _consult(
    config: AppConfig,
    providers: dict[str, AIProvider],
    settings: EngineSettings,
    prompt: str,
    repo_context: RepoContextSource | None = None,
) -> str:
    """Create the council issue and run a session on it.

    ``repo_context`` is the only way repository excerpts reach prompts; the
    repo_context_* settings are inert without it.
    """
    store = BeadsStore(config.defaults.beads_db)
    issue_id = await store.create_issue(_issue_title(prompt), prompt, labels=["council"])
    console.print(f"[bold cyan]Council issue:[/bold cyan] {issue_id}")
    console.print(f"Providers: {', '.join(providers)} | max rounds: {settings.max_rounds}\n")

    engine = CouncilEngine(
        store,
        providers,
        config.prompts,
        settings,
        FileArtifactStore(config.defaults.artifacts_dir),
        repo_context=repo_context,
        on_event=EventPrinter(console),
    )
    try:
        outcome = await engine.run_session(issue_id, prompt)
    except Exception as exc:
        logger.error("Session %s failed: %s", issue_id, exc)
        await store.add_comment(issue_id, system_comment(f"Engine error:\n\n```\n{format_error(exc)}\n```"))
        raise
    return outcome


@main.command()
@click.argument("prompt", nargs=-1, required=True)
@click.option("--providers", "providers_arg", default=None, help="Comma-separated providers to consult")
@click.option("--max-rounds", type=int, default=None)
@click.option("--heartbeat-seconds", type=float, default=None)
@click.option("--beads-heartbeat-seconds", type=float, default=None)
@click.option("--beads-heartbeat-max", type=int, default=None)
@click.option("--timeout-seconds", type=float, default=None, help="Per provider call")
@click.option("--user-wait-seconds", type=float, default=None, help="0 disables waiting for user replies")
@click.option("--max-user-waits", type=int, default=None)
@click.option("--user-poll-seconds", type=float, default=None)
@click.option(
    "--repo-context/--no-repo-context",
    "repo_context_enabled",
    default=None,
    help="Attach repository excerpts to prompts when a repo context source is configured",
)
@click.option("--repo-context-budget-bytes", type=int, default=None)
@click.option("--repo-context-max-matches", type=int, default=None)
@click.option("--repo-context-excerpt-radius-lines", type=int, default=None)
def consult(
    prompt: tuple[str, ...],
    providers_arg: str | None,
    max_rounds: int | None,
    heartbeat_seconds: float | None,
    beads_heartbeat_seconds: float | None,
    beads_heartbeat_max: int | None,
    timeout_seconds: float | None,
    user_wait_seconds: float | None,
    max_user_waits: int | None,
    user_poll_seconds: float | None,
    repo_context_enabled: bool | None,
    repo_context_budget_bytes: int | None,
    repo_context_max_matches: int | None,
    repo_context_excerpt_radius_lines: int | None,
) -> None:
    """Open a council issue for PROMPT and run the session."""
    prompt_text = " ".join(prompt).strip()
    if not prompt_text:
        console.print("[bold red]Error:[/bold red] Provide a non-empty PROMPT.")
        sys.exit(1)

    config = _load_config_or_exit()
    try:
        settings = EngineSettings.from_defaults(
            config.defaults,
            max_rounds=max_rounds,
            heartbeat_seconds=heartbeat_seconds,
            beads_heartbeat_seconds=beads_heartbeat_seconds,
            beads_heartbeat_max=beads_heartbeat_max,
            timeout_seconds=timeout_seconds,
            user_wait_seconds=user_wait_seconds,
            max_user_waits=max_user_waits,
            user_poll_seconds=user_poll_seconds,
            repo_context_enabled=repo_context_enabled,
            repo_context_budget_bytes=repo_context_budget_bytes,
            repo_context_max_matches=repo_context_max_matches,
            repo_context_excerpt_radius_lines=repo_context_excerpt_radius_lines,
        )
    except ConfigurationError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)
    providers = _providers_or_exit(config, providers_arg)

    try:
        outcome = asyncio.run(_consult(config, providers, settings, prompt_text))
    except Exception as exc:
        _fail(exc)
    console.print(f"\n[bold green]Session finished:[/bold green] {outcome}")


@main.command()
@click.argument("issue_id")
@click.argument("message", nargs=-1, required=True)
def reply(issue_id: str, message: tuple[str, ...]) -> None:
    """Post a user reply on ISSUE_ID for a waiting session to pick up."""
    text = " ".join(message).strip()
    if not text:
        console.print("[bold red]Error:[/bold red] Provide a non-empty MESSAGE.")
        sys.exit(1)

    config = _load_config_or_exit()
    store = BeadsStore(config.defaults.beads_db)
    try:
        asyncio.run(store.add_comment(issue_id, format_user_reply(text)))
    except BeadsError as exc:
        _fail(exc)
    console.print(f"[green]Reply posted to {issue_id}[/green]")


async def _watch(store: BeadsStore, issue_id: str, interval_seconds: float, tail: int, once: bool) -> None:
    comments = await store.list_comments(issue_id)
    print_transcript(comments, tail, console)
    if once:
        return
    seen = max_comment_id(comments)
    while True:
        await asyncio.sleep(interval_seconds)
        comments = await store.list_comments(issue_id)
        fresh = [c for c in comments if c.id > seen]
        if fresh:
            print_transcript(fresh, 0, console)
            seen = max_comment_id(fresh)


@main.command()
@click.argument("issue_id")
@click.option("--interval-seconds", type=float, default=2.0, show_default=True)
@click.option("--tail", type=int, default=10, show_default=True, help="Comments shown on start; 0 shows all")
@click.option("--once", is_flag=True, help="Print the tail and exit")
def watch(issue_id: str, interval_seconds: float, tail: int, once: bool) -> None:
    """Follow the transcript of ISSUE_ID."""
    config = _load_config_or_exit()
    store = BeadsStore(config.defaults.beads_db)
    try:
        asyncio.run(_watch(store, issue_id, interval_seconds, tail, once))
    except BeadsError as exc:
        _fail(exc)
    except KeyboardInterrupt:
        console.print("[dim]Stopped watching.[/dim]")


@main.command()
@click.argument("issue_id")
@click.option("--provider", "provider_name", default=None, help="Provider for the plan (default: from config)")
@click.option("--timeout-seconds", type=float, default=None)
def plan(issue_id: str, provider_name: str | None, timeout_seconds: float | None) -> None:
    """Ask one provider to turn the ISSUE_ID transcript into an issue plan."""
    config = _load_config_or_exit()
    name = provider_name or config.defaults.plan_provider
    provider = _providers_or_exit(config, name)[name]
    store = BeadsStore(config.defaults.beads_db)
    artifact_store = FileArtifactStore(config.defaults.artifacts_dir)

    try:
        response = asyncio.run(
            run_plan_mode(
                store,
                provider,
                config.prompts,
                artifact_store,
                issue_id,
                timeout_sec=timeout_seconds or config.defaults.timeout_seconds,
            )
        )
    except CouncilError as exc:
        _fail(exc)

    plan_artifacts = [a for a in response.artifacts if a.type == PLAN_ARTIFACT_TYPE]
    if not plan_artifacts:
        console.print(f"[yellow]No {PLAN_ARTIFACT_TYPE} artifact in the response.[/yellow]")
        sys.exit(1)
    try:
        issue_plan = parse_issue_plan_artifact(plan_artifacts[0])
    except PlanError as exc:
        _fail(exc)
    print_plan(issue_plan, artifact_store.issue_dir(issue_id), console)
    console.print(f"\nReview it, then run: [bold]council apply-plan {issue_id}[/bold]")


@main.command("apply-plan")
@click.argument("issue_id")
@click.option("--yes", is_flag=True, help="Create issues without confirmation")
def apply_plan_command(issue_id: str, yes: bool) -> None:
    """Create dev issues from the latest plan saved for ISSUE_ID."""
    config = _load_config_or_exit()
    plan_path = find_latest_plan_file(config.defaults.artifacts_dir, issue_id)
    if plan_path is None:
        console.print(f"[bold red]Error:[/bold red] No plan found for {issue_id}. Run `council plan {issue_id}` first.")
        sys.exit(1)
    try:
        issue_plan = load_plan_file(plan_path)
    except PlanError as exc:
        _fail(exc)

    print_plan(issue_plan, plan_path, console)
    if not yes and not click.confirm(f"Create {len(issue_plan.issues)} issue(s)?", default=False):
        sys.exit(0)

    dev_store = BeadsStore(config.defaults.dev_beads_db)
    try:
        created = asyncio.run(apply_plan(dev_store, issue_id, issue_plan))
    except BeadsError as exc:
        _fail(exc)
    for title, created_id in created.items():
        console.print(f"  [green]{created_id}[/green] {title}")


@main.command()
@click.option("--providers", "providers_arg", default=None, help="Comma-separated providers to probe")
@click.option("--timeout-seconds", type=float, default=DEFAULT_PROBE_TIMEOUT_SEC, show_default=True)
@click.option("--prompt", default=DEFAULT_PROBE_PROMPT, show_default=True)
def probe(providers_arg: str | None, timeout_seconds: float, prompt: str) -> None:
    """Run one short research call per provider and print the results as JSON."""
    config = _load_config_or_exit()
    providers = _providers_or_exit(config, providers_arg)
    results = asyncio.run(probe_providers(providers, config.prompts, prompt, timeout_seconds))
    click.echo(json.dumps([r.to_dict() for r in results], indent=2, ensure_ascii=False))
    if not any(r.ok for r in results):
        sys.exit(1)


@main.command()
def doctor() -> None:
    """Report whether `bd` is installed and which providers have API keys."""
    config = _load_config_or_exit()
    bd_path = shutil.which("bd")
    if bd_path:
        console.print(f"  [green]OK  [/green] bd ({bd_path})")
    else:
        console.print("  [red]FAIL[/red] bd not found on PATH")

    for name in PROVIDER_NAMES:
        model_cfg = config.models.get(name)
        if model_cfg is None:
            console.print(f"  [red]FAIL[/red] {name}: missing from settings")
        elif name in config.available_providers:
            console.print(f"  [green]OK  [/green] {name} ({model_cfg.model})")
        else:
            console.print(f"  [yellow]SKIP[/yellow] {name}: set {model_cfg.api_key_env} in .env")

    if not bd_path or not config.available_providers:
        sys.exit(1)


if __name__ == "__main__":
    main()
