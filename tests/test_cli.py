"""Tests for the click commands in council/cli.py. No subprocesses or network."""

import json

import pytest
from click.testing import CliRunner

import council.cli as cli
from council.cli import _build_all_providers, _issue_title, _parse_provider_names, main
from council.errors import ConfigurationError, ProviderError
from council.models import Comment
from council.plan import PLAN_FILENAME

from tests.conftest import MemoryStore, MockProvider, agent_json


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def cli_env(monkeypatch, sample_app_config):
    """Point the CLI at in-memory stores and mock providers."""
    store = MemoryStore()
    providers = {"codex": MockProvider("codex", chair_score=6), "claude": MockProvider("claude", chair_score=8)}
    monkeypatch.setattr(cli, "load_config", lambda: sample_app_config)
    monkeypatch.setattr(cli, "BeadsStore", lambda *args, **kwargs: store)
    monkeypatch.setattr(cli, "_build_all_providers", lambda config, names: {n: providers[n] for n in names if n in providers})
    monkeypatch.setattr(cli, "load_dotenv", lambda: None)
    return store, providers


def test_parse_provider_names_default_order():
    assert _parse_provider_names(None) == ["codex", "claude", "gemini"]


def test_parse_provider_names_uses_seat_order_without_duplicates():
    assert _parse_provider_names("gemini, codex,gemini") == ["codex", "gemini"]
    assert _parse_provider_names("gemini,claude,codex") == ["codex", "claude", "gemini"]


def test_parse_provider_names_unknown_exits():
    with pytest.raises(SystemExit):
        _parse_provider_names("codex,grok")


def test_build_all_providers_skips_missing_keys(sample_app_config, monkeypatch):
    monkeypatch.setenv("TEST_API_KEY", "sk-test")
    providers = _build_all_providers(sample_app_config, ["codex", "claude"])
    assert list(providers) == ["claude"]


def test_build_all_providers_skips_failed_instantiation(sample_app_config, monkeypatch):
    class Broken:
        def __init__(self, config):
            raise ProviderError(config.name, "Missing API key: TEST_API_KEY")

    monkeypatch.setitem(cli.PROVIDER_CLASSES, "claude", Broken)
    assert _build_all_providers(sample_app_config, ["claude"]) == {}


def test_issue_title():
    assert _issue_title("Pick a queue\nmore detail") == "Council: Pick a queue"
    assert len(_issue_title("x" * 200)) == len("Council: ") + 80


def test_consult_runs_session(runner, cli_env):
    store, providers = cli_env

    result = runner.invoke(main, ["consult", "--max-rounds", "1", "Should", "we", "shard?"])

    assert result.exit_code == 0, result.output
    assert "test-1" in result.output
    assert store.issues["test-1"]["description"] == "Should we shard?"
    assert store.issues["test-1"]["labels"] == ["council"]
    texts = store.texts("test-1")
    assert "---\n**SYSTEM** Chair selected: `claude` (critique)\n---" in texts
    assert "Session converged after round 1." in texts[-1]
    assert "Session finished: converged" in result.output


def test_consult_provider_selection(runner, cli_env):
    store, providers = cli_env

    result = runner.invoke(main, ["consult", "--providers", "claude", "prompt"])

    assert result.exit_code == 0, result.output
    providers["codex"].invoke.assert_not_called()
    assert providers["claude"].invoke.await_count == 3


def test_consult_engine_error_posted_and_exit_1(runner, cli_env):
    store, providers = cli_env
    for name, provider in providers.items():
        provider.invoke.side_effect = ProviderError(name, "down")

    result = runner.invoke(main, ["consult", "prompt"])

    assert result.exit_code == 1
    assert "Engine error" in store.texts("test-1")[-1]
    assert "All providers failed in research phase" in store.texts("test-1")[-1]


def test_consult_invalid_setting(runner, cli_env):
    result = runner.invoke(main, ["consult", "--max-rounds", "0", "prompt"])
    assert result.exit_code == 1
    assert "max_rounds must be positive" in result.output


def test_consult_no_providers(runner, cli_env):
    result = runner.invoke(main, ["consult", "--providers", "gemini", "prompt"])
    assert result.exit_code == 1
    assert "No providers available" in result.output


def test_config_error_exits(runner, monkeypatch):
    def broken():
        raise ConfigurationError("Invalid settings file")

    monkeypatch.setattr(cli, "load_config", broken)
    result = runner.invoke(main, ["reply", "bd-1", "hi"])
    assert result.exit_code == 1
    assert "Config error" in result.output


def test_reply_posts_user_marker(runner, cli_env):
    store, _ = cli_env

    result = runner.invoke(main, ["reply", "bd-7", "Assume", "one", "region."])

    assert result.exit_code == 0, result.output
    assert store.texts("bd-7") == ["**USER**\nAssume one region.\n"]


def test_watch_once_prints_tail(runner, cli_env):
    store, _ = cli_env
    store.comments["bd-1"] = [Comment(i, f"note {i}") for i in range(1, 4)]

    result = runner.invoke(main, ["watch", "bd-1", "--once", "--tail", "2"])

    assert result.exit_code == 0, result.output
    assert "note 1" not in result.output
    assert "note 3" in result.output


def _write_plan(artifacts_dir, issue_id="bd-1"):
    path = artifacts_dir / issue_id / "round-1" / "oracle" / "codex-plan-chair" / PLAN_FILENAME
    path.parent.mkdir(parents=True)
    path.write_text(
        json.dumps(
            {
                "version": 1,
                "issues": [
                    {"title": "Add cache", "description": "Write-through."},
                    {"title": "Load test", "description": "k6.", "depends_on": ["Add cache"]},
                ],
            }
        ),
        encoding="utf-8",
    )
    return path


def test_apply_plan_with_yes(runner, cli_env, sample_app_config):
    store, _ = cli_env
    _write_plan(sample_app_config.defaults.artifacts_dir)

    result = runner.invoke(main, ["apply-plan", "bd-1", "--yes"])

    assert result.exit_code == 0, result.output
    assert [i["title"] for i in store.issues.values()] == ["Add cache", "Load test"]
    assert store.dependencies == [("test-2", "test-1", "blocks")]


def test_apply_plan_declined(runner, cli_env, sample_app_config):
    store, _ = cli_env
    _write_plan(sample_app_config.defaults.artifacts_dir)

    result = runner.invoke(main, ["apply-plan", "bd-1"], input="n\n")

    assert result.exit_code == 0
    assert store.issues == {}


def test_apply_plan_missing(runner, cli_env):
    result = runner.invoke(main, ["apply-plan", "bd-9"])
    assert result.exit_code == 1
    assert "No plan found" in result.output


def test_plan_command(runner, cli_env, sample_app_config):
    store, providers = cli_env
    sample_app_config.defaults.plan_provider = "claude"
    plan = {"issues": [{"title": "Add cache", "description": "Write-through."}]}
    providers["claude"].invoke.return_value = json.dumps(
        {
            "agent": "claude-plan-chair",
            "round": 1,
            "phase": "oracle",
            "message": "Here is the plan.",
            "artifacts": [
                {
                    "type": "beads_issue_plan",
                    "title": "Plan",
                    "content": json.dumps(plan),
                    "suggested_filename": PLAN_FILENAME,
                }
            ],
        }
    )

    result = runner.invoke(main, ["plan", "bd-1"])

    assert result.exit_code == 0, result.output
    assert "Add cache" in result.output
    assert "Plan mode requested (provider: `claude`)" in store.texts("bd-1")[0]


def test_probe_prints_json(runner, cli_env):
    _, providers = cli_env
    providers["claude"].invoke.side_effect = ProviderError("claude", "403 Forbidden")

    result = runner.invoke(main, ["probe", "--providers", "codex,claude"])

    assert result.exit_code == 0, result.output
    assert '"provider": "codex"' in result.output
    assert '"error": "[claude] 403 Forbidden"' in result.output


def test_doctor(runner, cli_env, monkeypatch):
    monkeypatch.setattr(cli.shutil, "which", lambda name: "/usr/local/bin/bd")

    result = runner.invoke(main, ["doctor"])

    assert result.exit_code == 0, result.output
    assert "bd (/usr/local/bin/bd)" in result.output
    assert "claude (claude-sonnet-4-5)" in result.output
    assert "codex: missing from settings" in result.output


def test_doctor_without_bd(runner, cli_env, monkeypatch):
    monkeypatch.setattr(cli.shutil, "which", lambda name: None)
    result = runner.invoke(main, ["doctor"])
    assert result.exit_code == 1
    assert "bd not found on PATH" in result.output


def test_consult_chair_tie_goes_to_earlier_seat(runner, cli_env):
    store, providers = cli_env
    for name, provider in providers.items():
        provider.invoke.return_value = agent_json(name, chair_score=7)

    result = runner.invoke(main, ["consult", "--max-rounds", "1", "--providers", "claude,codex", "prompt"])

    assert result.exit_code == 0, result.output
    texts = store.texts("test-1")
    assert "---\n**SYSTEM** Chair selected: `codex` (critique)\n---" in texts
    running = [t for t in texts if "Running" in t]
    assert "`codex`" in running[0]


def test_consult_unexpected_error_posted_and_exit_1(runner, cli_env, monkeypatch):
    store, _ = cli_env

    class FullDisk:
        def __init__(self, base_dir):
            pass

        async def persist(self, *args):
            raise OSError(28, "No space left on device")

    monkeypatch.setattr(cli, "FileArtifactStore", FullDisk)

    result = runner.invoke(main, ["consult", "prompt"])

    assert result.exit_code == 1
    assert "Engine error" in store.texts("test-1")[-1]
    assert "No space left on device" in store.texts("test-1")[-1]
    assert "No space left on device" in result.output


def test_consult_repo_context_flags_reach_settings(runner, cli_env, monkeypatch):
    seen = []
    real_engine = cli.CouncilEngine

    def capture(store, providers, prompts, settings, *args, **kwargs):
        seen.append(settings)
        return real_engine(store, providers, prompts, settings, *args, **kwargs)

    monkeypatch.setattr(cli, "CouncilEngine", capture)

    result = runner.invoke(
        main,
        ["consult", "--no-repo-context", "--repo-context-budget-bytes", "4096", "--repo-context-max-matches", "7", "prompt"],
    )

    assert result.exit_code == 0, result.output
    assert seen[0].repo_context_enabled is False
    assert seen[0].repo_context_budget_bytes == 4096
    assert seen[0].repo_context_max_matches == 7
    assert seen[0].repo_context_excerpt_radius_lines == 2
