"""
Tests for the pm CLI.

This test suite covers:
1. Help and config generation
2. Sync (-Sy, -Ss, -S, -Sc)
3. Upgrade (-U, --dry-run)
4. Query (-Q)
5. Exit codes on failures
"""

import io
import json
import zipfile
from pathlib import Path

import httpx
import pytest

from plugmaster.app import PluginRepository
from plugmaster.plugin import loader
from plugmaster.repository.ledger import DISABLED_MARKER
from pm import cli
from pm.commands import common

PRIMARY = "https://repo.example.com/pluginmaster.json"


def archive(name: str, version: str) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        zf.writestr(f"{name}.py", f"VERSION = {version!r}\n")
    return buffer.getvalue()


def catalog_entry(name: str, version: str, api_level: int = 3, **extra) -> dict:
    entry = {
        "InternalName": name,
        "Name": name,
        "AssemblyVersion": version,
        "DalamudApiLevel": api_level,
        "Description": f"{name} does things",
        "DownloadLinkInstall": f"https://dl.example.com/{name}/{version}.zip",
    }
    entry.update(extra)
    return entry


class Remote:
    """Fake repository and download host."""

    def __init__(self, entries: list[dict], status: int = 200):
        self.status = status
        self.entries = entries
        self.archives = {
            entry["DownloadLinkInstall"]: archive(entry["InternalName"], entry["AssemblyVersion"])
            for entry in entries
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if url == PRIMARY:
            if self.status != 200:
                return httpx.Response(self.status)
            return httpx.Response(200, json=self.entries)
        if url in self.archives:
            return httpx.Response(200, content=self.archives[url])
        return httpx.Response(404)


@pytest.fixture(autouse=True)
def clean_module_cache():
    loader.clear_cache()
    yield
    loader.clear_cache()


@pytest.fixture
def workspace(tmp_path):
    plugins_dir = tmp_path / "plugins"
    config_file = tmp_path / "plugmaster.toml"
    config_file.write_text(
        "[repository]\n"
        f'primary_repo = "{PRIMARY}"\n'
        f'plugin_dir = "{plugins_dir.as_posix()}"\n'
        "api_level = 3\n"
    )
    return config_file, plugins_dir


def serve(monkeypatch, remote: Remote) -> None:
    transport = httpx.MockTransport(remote.handler)

    def make_repository(settings, **kwargs):
        return PluginRepository(settings, transport=transport, **kwargs)

    monkeypatch.setattr(common, "PluginRepository", make_repository)


def install_local(plugins_dir: Path, name: str, version: str) -> Path:
    version_dir = plugins_dir / name / version
    version_dir.mkdir(parents=True)
    (version_dir / f"{name}.py").write_text(f"VERSION = {version!r}\n")
    (version_dir / f"{name}.json").write_text(
        json.dumps({"InternalName": name, "AssemblyVersion": version, "DalamudApiLevel": 3})
    )
    return version_dir


class TestBasics:
    """Test help and config generation."""

    def test_help(self, capsys):
        assert cli.main(["-h"]) == 0
        assert "pm -Sy" in capsys.readouterr().out

    def test_no_operation_shows_help(self, capsys):
        assert cli.main([]) == 0
        assert "Usage" in capsys.readouterr().out

    def test_genconfig(self, tmp_path, capsys):
        config_file = tmp_path / "config" / "plugmaster.toml"

        assert cli.main(["--genconfig", "--config", str(config_file)]) == 0
        assert "[repository]" in config_file.read_text()

        assert cli.main(["--genconfig", "--config", str(config_file)]) == 1
        assert "already exists" in capsys.readouterr().err

    def test_invalid_config(self, tmp_path, capsys):
        config_file = tmp_path / "plugmaster.toml"
        config_file.write_text("[repository]\napi_level = -1\n")

        assert cli.main(["-Q", "--config", str(config_file)]) == 1
        assert "Invalid config" in capsys.readouterr().err


class TestSync:
    """Test -S operations."""

    def test_refresh(self, workspace, monkeypatch, capsys):
        config_file, _ = workspace
        serve(monkeypatch, Remote([catalog_entry("Foo", "1.0.0"), catalog_entry("Bar", "1.0.0")]))

        assert cli.main(["-Sy", "--config", str(config_file)]) == 0
        assert "Catalog: 2 plugins" in capsys.readouterr().out

    def test_refresh_failure(self, workspace, monkeypatch, capsys):
        config_file, _ = workspace
        serve(monkeypatch, Remote([], status=500))

        assert cli.main(["-Sy", "--config", str(config_file)]) == 1
        assert "Could not fetch the plugin catalog" in capsys.readouterr().err

    def test_search(self, workspace, monkeypatch, capsys):
        config_file, _ = workspace
        serve(
            monkeypatch,
            Remote([
                catalog_entry("ChatTools", "1.0.0", TestingAssemblyVersion="1.1.0"),
                catalog_entry("MapMarker", "2.0.0"),
            ]),
        )

        assert cli.main(["-Ss", "chat", "--config", str(config_file)]) == 0

        out = capsys.readouterr().out
        assert "ChatTools 1.0.0 (testing 1.1.0) [repo 0]" in out
        assert "ChatTools does things" in out
        assert "MapMarker" not in out

    def test_install(self, workspace, monkeypatch, capsys):
        config_file, plugins_dir = workspace
        serve(monkeypatch, Remote([catalog_entry("Foo", "1.2.0")]))

        assert cli.main(["-S", "Foo", "--config", str(config_file)]) == 0

        assert "Installed Foo v1.2.0" in capsys.readouterr().out
        assert (plugins_dir / "Foo" / "1.2.0" / "Foo.py").exists()
        assert (plugins_dir / "Foo" / "1.2.0" / "Foo.json").exists()

    def test_install_unknown_target(self, workspace, monkeypatch, capsys):
        config_file, _ = workspace
        serve(monkeypatch, Remote([catalog_entry("Foo", "1.0.0")]))

        assert cli.main(["-S", "Nope", "--config", str(config_file)]) == 1
        assert "target not found: Nope" in capsys.readouterr().err

    def test_install_wrong_api_level(self, workspace, monkeypatch, capsys):
        config_file, plugins_dir = workspace
        serve(monkeypatch, Remote([catalog_entry("Foo", "1.0.0", api_level=2)]))

        assert cli.main(["-S", "Foo", "--config", str(config_file)]) == 1
        assert "API level 2" in capsys.readouterr().err
        assert not (plugins_dir / "Foo").exists()

    def test_install_testing_not_allowed(self, workspace, monkeypatch, capsys):
        config_file, _ = workspace
        serve(monkeypatch, Remote([catalog_entry("Foo", "1.0.0")]))

        assert cli.main(["-S", "Foo", "--testing", "--config", str(config_file)]) == 1
        assert "allow_testing" in capsys.readouterr().err

    def test_install_without_targets(self, workspace, monkeypatch, capsys):
        config_file, _ = workspace
        serve(monkeypatch, Remote([]))

        assert cli.main(["-S", "--config", str(config_file)]) == 1
        assert "No targets specified" in capsys.readouterr().err

    def test_clean(self, workspace, monkeypatch, capsys):
        config_file, plugins_dir = workspace
        serve(monkeypatch, Remote([]))
        old = install_local(plugins_dir, "Foo", "1.0.0")
        (old / DISABLED_MARKER).touch()
        install_local(plugins_dir, "Foo", "2.0.0")

        assert cli.main(["-Sc", "--config", str(config_file)]) == 0

        assert "Cleaned up 1 directory" in capsys.readouterr().out
        assert not old.exists()


class TestUpgrade:
    """Test -U."""

    def test_upgrade(self, workspace, monkeypatch, capsys):
        config_file, plugins_dir = workspace
        serve(monkeypatch, Remote([catalog_entry("Foo", "2.0.0")]))
        install_local(plugins_dir, "Foo", "1.0.0")

        assert cli.main(["-U", "--config", str(config_file)]) == 0

        out = capsys.readouterr().out
        assert "Plugins updated:" in out
        assert "    》 Foo updated to v2.0.0." in out
        assert (plugins_dir / "Foo" / "2.0.0" / "Foo.py").exists()
        assert (plugins_dir / "Foo" / "1.0.0" / DISABLED_MARKER).exists()

    def test_upgrade_dry_run(self, workspace, monkeypatch, capsys):
        config_file, plugins_dir = workspace
        serve(monkeypatch, Remote([catalog_entry("Foo", "2.0.0")]))
        install_local(plugins_dir, "Foo", "1.0.0")

        assert cli.main(["-U", "--dry-run", "--config", str(config_file)]) == 0

        out = capsys.readouterr().out
        assert "Foo -> v2.0.0" in out
        assert not (plugins_dir / "Foo" / "2.0.0").exists()

    def test_up_to_date(self, workspace, monkeypatch, capsys):
        config_file, plugins_dir = workspace
        serve(monkeypatch, Remote([catalog_entry("Foo", "1.0.0")]))
        install_local(plugins_dir, "Foo", "1.0.0")

        assert cli.main(["-U", "--config", str(config_file)]) == 0
        assert "All plugins are up to date" in capsys.readouterr().out

    def test_upgrade_failure_exit_code(self, workspace, monkeypatch, capsys):
        config_file, plugins_dir = workspace
        remote = Remote([catalog_entry("Foo", "2.0.0")])
        remote.archives.clear()
        serve(monkeypatch, remote)
        install_local(plugins_dir, "Foo", "1.0.0")

        assert cli.main(["-U", "--config", str(config_file)]) == 1
        assert "Foo update to v2.0.0 failed." in capsys.readouterr().out


class TestQuery:
    """Test -Q."""

    def test_query(self, workspace, capsys):
        config_file, plugins_dir = workspace
        install_local(plugins_dir, "Foo", "1.0.0")
        install_local(plugins_dir, "Foo", "2.0.0")
        disabled = install_local(plugins_dir, "Bar", "1.0.0")
        (disabled / DISABLED_MARKER).touch()

        assert cli.main(["-Q", "--config", str(config_file)]) == 0

        out = capsys.readouterr().out
        assert "Foo 2.0.0 [enabled]" in out
        assert "Bar 1.0.0 [disabled]" in out

    def test_query_verbose_target(self, workspace, capsys):
        config_file, plugins_dir = workspace
        install_local(plugins_dir, "Foo", "1.0.0")
        install_local(plugins_dir, "Bar", "1.0.0")

        assert cli.main(["-Q", "Foo", "-v", "--config", str(config_file)]) == 0

        out = capsys.readouterr().out
        assert "Foo 1.0.0 [enabled]" in out
        assert "    1.0.0 active" in out
        assert "Bar" not in out
