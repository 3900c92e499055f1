"""Tests for the command line interface."""

import json
from pathlib import Path

import httpx
import pytest
from click.testing import CliRunner

from conftest import API_URL, ARCHIVE_URL, PAGE_URL


@pytest.fixture
def config_file(temp_dir: Path, plugins_dir: Path) -> Path:
    path = temp_dir / "config.yaml"
    path.write_text(f"plugins_dir: {plugins_dir}\ntemp_dir: {temp_dir / 'tmp'}\n")
    return path


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


class TestCli:
    """Tests for the archive-plugin-manager command."""

    def test_list_empty(self, clean_env, runner: CliRunner, config_file: Path):
        from archive_plugin_manager.cli import cli

        result = runner.invoke(cli, ["--config", str(config_file), "list"])

        assert result.exit_code == 0
        assert "No plugins installed" in result.output

    def test_list_json(self, clean_env, runner: CliRunner, config_file: Path, plugins_dir: Path, make_plugin_folder):
        from archive_plugin_manager.cli import cli

        make_plugin_folder(plugins_dir, "my-plugin", name="my-plugin", version="1.2.3")
        make_plugin_folder(plugins_dir, "manual", name="manual", managed=False)

        result = runner.invoke(cli, ["--config", str(config_file), "list", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert [p["name"] for p in data] == ["my-plugin"]
        assert data[0]["version"] == "1.2.3"

    def test_uninstall(self, clean_env, runner: CliRunner, config_file: Path, plugins_dir: Path, make_plugin_folder):
        from archive_plugin_manager.cli import cli

        folder = make_plugin_folder(plugins_dir, "my-plugin", name="my-plugin")

        result = runner.invoke(cli, ["--config", str(config_file), "uninstall", "my-plugin"])

        assert result.exit_code == 0
        assert "Plugin Uninstalled" in result.output
        assert not folder.exists()

    def test_uninstall_unmanaged_fails(self, clean_env, runner: CliRunner, config_file: Path, plugins_dir: Path, make_plugin_folder):
        from archive_plugin_manager.cli import cli

        folder = make_plugin_folder(plugins_dir, "manual", name="manual", managed=False)

        result = runner.invoke(cli, ["--config", str(config_file), "uninstall", "manual"])

        assert result.exit_code == 1
        assert "Invalid plugin folder" in result.output
        assert folder.exists()

    def test_install(
        self,
        clean_env,
        runner: CliRunner,
        config_file: Path,
        plugins_dir: Path,
        monkeypatch: pytest.MonkeyPatch,
        mock_client,
        plugin_archive: bytes,
        registry_payload,
    ):
        from archive_plugin_manager import cli as cli_module
        from archive_plugin_manager.manager import PluginManager

        client = mock_client(
            {
                API_URL: httpx.Response(200, json=registry_payload(plugin_archive)),
                ARCHIVE_URL: httpx.Response(200, content=plugin_archive),
            }
        )
        monkeypatch.setattr(cli_module, "PluginManager", lambda config: PluginManager(config, client=client))

        result = runner.invoke(cli_module.cli, ["--config", str(config_file), "install", PAGE_URL])

        assert result.exit_code == 0, result.output
        assert "Downloading Plugin" in result.output
        assert "Plugin Installed" in result.output
        assert (plugins_dir / "my-plugin" / "main.js").exists()

    def test_install_rejects_foreign_url(self, clean_env, runner: CliRunner, config_file: Path):
        from archive_plugin_manager.cli import cli

        result = runner.invoke(cli, ["--config", str(config_file), "install", "https://example.com/x"])

        assert result.exit_code == 1
        assert "Invalid URL" in result.output

    def test_bad_config(self, clean_env, runner: CliRunner, temp_dir: Path):
        from archive_plugin_manager.cli import cli

        bad = temp_dir / "bad.yaml"
        bad.write_text("timeout: -5\n")

        result = runner.invoke(cli, ["--config", str(bad), "list"])

        assert result.exit_code != 0
        assert "timeout" in result.output
