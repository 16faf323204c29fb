"""Unit tests for council/probe.py, no real API calls."""

from council.errors import ProviderError
from council.probe import DEFAULT_PROBE_PROMPT, probe_providers

from tests.conftest import MockProvider, prompt_agent, prompt_phase


async def test_all_providers_pass(sample_prompts_config):
    providers = {"codex": MockProvider("codex"), "claude": MockProvider("claude")}

    results = await probe_providers(providers, sample_prompts_config)

    assert [(r.provider, r.ok, r.error) for r in results] == [("codex", True, None), ("claude", True, None)]
    assert results[0].response.agent == "codex"
    assert all(r.ms >= 0 for r in results)


async def test_one_provider_fails(sample_prompts_config):
    providers = {"codex": MockProvider("codex"), "gemini": MockProvider("gemini")}
    providers["gemini"].invoke.side_effect = ProviderError("gemini", "403 Forbidden")

    results = await probe_providers(providers, sample_prompts_config)

    assert results[0].ok is True
    assert results[1].ok is False
    assert "403" in results[1].error
    assert results[1].response is None


async def test_non_json_output_fails(sample_prompts_config):
    providers = {"claude": MockProvider("claude")}
    providers["claude"].invoke.return_value = "OK"

    results = await probe_providers(providers, sample_prompts_config)

    assert results[0].ok is False
    assert "Output was not JSON." in results[0].error


async def test_probe_request_shape(sample_prompts_config):
    provider = MockProvider("codex")

    await probe_providers({"codex": provider}, sample_prompts_config, timeout_sec=12)

    prompt, timeout_sec = provider.invoke.call_args.args
    assert prompt_agent(prompt) == "codex-probe"
    assert prompt_phase(prompt) == "research"
    assert DEFAULT_PROBE_PROMPT in prompt
    assert timeout_sec == 12


async def test_to_dict(sample_prompts_config):
    providers = {"codex": MockProvider("codex"), "gemini": MockProvider("gemini")}
    providers["gemini"].invoke.side_effect = ProviderError("gemini", "down")

    ok, failed = [r.to_dict() for r in await probe_providers(providers, sample_prompts_config)]

    assert ok["response"]["agent"] == "codex"
    assert "error" not in ok
    assert failed == {"provider": "gemini", "ok": False, "ms": failed["ms"], "error": "[gemini] down"}
