"""Tests for the toolbridge command line."""

import pytest
import yaml
from click.testing import CliRunner

from toolbridge.cli import cli
from toolbridge.store import ConfigStore, SecretStore


@pytest.fixture
def settings(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({
        "store": {
            "providers_file": str(tmp_path / "providers.yaml"),
            "secrets_dir": str(tmp_path / "secrets"),
        },
        "logging": {"level": "WARNING"},
    }))
    return path


@pytest.fixture
def invoke(settings):
    runner = CliRunner()

    def run(*args, **kwargs):
        return runner.invoke(cli, ["--config", str(settings), *args], **kwargs)
    return run


@pytest.fixture
def saved(tmp_path):
    def load():
        return ConfigStore(tmp_path / "providers.yaml", SecretStore(tmp_path / "secrets"))
    return load


def add_disabled(invoke, name="Weather"):
    return invoke(
        "providers", "add",
        "--name", name,
        "--endpoint", "https://tools.example.com/rpc",
        "--client-id", "cid",
        "--client-secret", "s3cret",
        "--disabled",
    )


def test_help():
    result = CliRunner().invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "providers" in result.output
    assert "call" in result.output


def test_providers_list_empty(invoke):
    result = invoke("providers", "list")
    assert result.exit_code == 0
    assert "(none)" in result.output


def test_providers_add(invoke, saved):
    result = add_disabled(invoke)

    assert result.exit_code == 0, result.output
    assert "Created provider Weather" in result.output

    configs = saved().get_all_configs()
    assert len(configs) == 1
    assert configs[0].enabled is False
    assert saved().get_secret(configs[0].id) == "s3cret"


def test_providers_add_prompts_for_secret(invoke, saved):
    result = invoke(
        "providers", "add",
        "--name", "Weather",
        "--endpoint", "https://tools.example.com/rpc",
        "--client-id", "cid",
        "--disabled",
        input="typed-secret\n",
    )

    assert result.exit_code == 0, result.output
    config = saved().get_all_configs()[0]
    assert saved().get_secret(config.id) == "typed-secret"


def test_providers_show(invoke, saved):
    add_disabled(invoke)
    provider_id = saved().get_all_configs()[0].id

    result = invoke("providers", "show", provider_id)
    assert result.exit_code == 0
    assert "Weather" in result.output
    assert "disabled" in result.output


def test_providers_show_unknown(invoke):
    result = invoke("providers", "show", "missing")
    assert result.exit_code == 1
    assert "Provider configuration not found for missing" in result.output


def test_providers_update(invoke, saved):
    add_disabled(invoke)
    provider_id = saved().get_all_configs()[0].id

    result = invoke("providers", "update", provider_id, "--name", "Renamed")

    assert result.exit_code == 0, result.output
    assert "Updated provider Renamed" in result.output
    assert saved().get_config(provider_id).name == "Renamed"


def test_providers_remove(invoke, saved):
    add_disabled(invoke)
    provider_id = saved().get_all_configs()[0].id

    result = invoke("providers", "remove", provider_id, "--yes")

    assert result.exit_code == 0, result.output
    assert saved().get_all_configs() == []
    assert saved().get_secret(provider_id) is None


def test_providers_remove_requires_confirmation(invoke, saved):
    add_disabled(invoke)
    provider_id = saved().get_all_configs()[0].id

    result = invoke("providers", "remove", provider_id, input="n\n")

    assert result.exit_code == 1
    assert len(saved().get_all_configs()) == 1


def test_tools_empty(invoke):
    result = invoke("tools")
    assert result.exit_code == 0
    assert "(none)" in result.output


def test_call_unknown_tool(invoke):
    result = invoke("call", "nonexistent")
    assert result.exit_code == 1
    assert "Tool nonexistent not found" in result.output


def test_call_rejects_bad_input(invoke):
    result = invoke("call", "get_weather", "--input", "[1, 2]")
    assert result.exit_code == 2
    assert "must be a JSON object" in result.output


def test_reload_one_provider_skips_the_others(invoke, saved, monkeypatch):
    """Reloading by id does not register every other provider first."""
    add_disabled(invoke)
    provider_id = saved().get_all_configs()[0].id

    started = []

    async def start(self):
        started.append(self)
        return {}

    monkeypatch.setattr("toolbridge.app.BridgeApp.start", start)
    result = invoke("reload", provider_id)

    assert result.exit_code == 0, result.output
    assert f"{provider_id}: 0 tools" in result.output
    assert started == []


def test_reload_unknown_provider(invoke):
    result = invoke("reload", "missing")
    assert result.exit_code == 1
    assert "Provider configuration not found for missing" in result.output


def test_status(invoke):
    result = invoke("status")
    assert result.exit_code == 0
    assert "Loaded tools: 0" in result.output


def test_config(invoke):
    result = invoke("config")
    assert result.exit_code == 0
    assert "TOOLBRIDGE CONFIG" in result.output
    assert "Refresh buffer: 300s" in result.output
