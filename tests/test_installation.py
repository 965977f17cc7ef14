"""
Tests for local installation state (editor_catalog/installation.py).
"""

import json
import subprocess
from pathlib import Path
from unittest.mock import patch, MagicMock

import pytest

from editor_catalog.config import Config
from editor_catalog.installation import (
    InstallationInspector,
    RegistryError,
    editor_executable,
    parse_hub_editors_output,
    playback_engines_dir,
    read_changeset_file,
    version_dir_of,
)
from editor_catalog.models import ModuleRecord, ReleaseRecord


@pytest.fixture(autouse=True)
def linux_host(monkeypatch, tmp_path):
    """Pin the platform to linux and isolate Hub config and env overrides."""
    hub_dir = tmp_path / "hub-config"
    hub_dir.mkdir()
    monkeypatch.setenv("EDITOR_CATALOG_HUB_CONFIG_DIR", str(hub_dir))
    monkeypatch.delenv("EDITOR_CATALOG_EDITOR_BASE_PATH", raising=False)
    monkeypatch.delenv("EDITOR_CATALOG_HUB_PATH", raising=False)
    with patch("editor_catalog.installation.current_os", return_value="linux"):
        yield hub_dir


def make_editor(base: Path, version: str, engines=()) -> Path:
    """Create a fake linux editor install and return its executable."""
    executable = base / version / "Editor" / "Unity"
    executable.parent.mkdir(parents=True)
    executable.write_text("")
    for name in engines:
        (base / version / "Editor" / "Data" / "PlaybackEngines" / name).mkdir(parents=True)
    return executable


def make_inspector(tmp_path, scan=(), **kwargs) -> InstallationInspector:
    inspector = InstallationInspector(
        hub_path=kwargs.pop("hub_path", ""),
        install_path_cache=tmp_path / "install-path.json",
        **kwargs,
    )
    inspector.scan_directories = lambda: [str(d) for d in scan]
    inspector.default_install_paths = lambda: [str(d) for d in scan]
    return inspector


class TestPathHelpers:
    """Tests for platform path helpers."""

    def test_editor_executable(self):
        """Test executable location per platform."""
        base = Path("/e/2022.3.60f1")
        assert editor_executable(base, "darwin") == base / "Unity.app"
        assert editor_executable(base, "windows") == base / "Editor" / "Unity.exe"
        assert editor_executable(base, "linux") == base / "Editor" / "Unity"

    def test_version_dir_of(self):
        """Test executables and version directories map to the version directory."""
        base = Path("/e/2022.3.60f1")
        assert version_dir_of(base / "Unity.app", "darwin") == base
        assert version_dir_of(base / "Editor" / "Unity.exe", "windows") == base
        assert version_dir_of(base / "Editor" / "Unity", "linux") == base
        assert version_dir_of(base, "linux") == base

    def test_playback_engines_dir(self):
        """Test PlaybackEngines location per platform."""
        base = Path("/e/2022.3.60f1")
        assert playback_engines_dir(base / "Unity.app", "darwin") == base / "PlaybackEngines"
        assert playback_engines_dir(base / "Editor" / "Unity.exe", "windows") == \
            base / "Editor" / "Data" / "PlaybackEngines"


class TestParseHubOutput:
    """Tests for parse_hub_editors_output."""

    def test_installed_at_lines(self):
        """Test version and path are split on "installed at"."""
        output = (
            "2022.3.60f1 (Apple silicon) , installed at /Applications/Unity/Hub/Editor/2022.3.60f1/Unity.app\n"
            "\n"
            "6000.0.23f1 , installed at /opt/editors/6000.0.23f1/Editor/Unity\n"
        )
        editors = parse_hub_editors_output(output)
        assert [(e.version, e.path) for e in editors] == [
            ("2022.3.60f1", "/Applications/Unity/Hub/Editor/2022.3.60f1/Unity.app"),
            ("6000.0.23f1", "/opt/editors/6000.0.23f1/Editor/Unity"),
        ]

    def test_fallback_format(self):
        """Test lines without "installed at" use first and last tokens."""
        editors = parse_hub_editors_output("2021.3.1f1  /x/Unity\nlonely\n")
        assert [(e.version, e.path) for e in editors] == [("2021.3.1f1", "/x/Unity")]


class TestReadChangesetFile:
    """Tests for read_changeset_file."""

    def test_reads_parenthesised_changeset(self, tmp_path):
        """Test the changeset is taken from the first line."""
        path = tmp_path / "version.txt"
        path.write_text("2022.3.20f1 (f3a49e6e3c6e)\nLinux x64 Unity Editor\n")
        assert read_changeset_file(path) == "f3a49e6e3c6e"

    def test_missing_or_malformed(self, tmp_path):
        """Test missing files and lines without parentheses yield ""."""
        assert read_changeset_file(tmp_path / "missing.txt") == ""
        path = tmp_path / "version.txt"
        path.write_text("2022.3.20f1\n")
        assert read_changeset_file(path) == ""


class TestListInstalledEditors:
    """Tests for InstallationInspector.list_installed_editors."""

    def test_nothing_installed_without_hub(self, tmp_path):
        """Test no sources and no Hub is an empty list, not an error."""
        assert make_inspector(tmp_path).list_installed_editors() == []

    def test_editors_file(self, tmp_path, linux_host):
        """Test entries are read from editors-v2.json."""
        (linux_host / "editors-v2.json").write_text(json.dumps({
            "schema_version": "v2",
            "data": [
                {"version": "2022.3.60f1", "location": ["/x/2022.3.60f1/Editor/Unity"],
                 "architecture": "x86_64", "manual": True},
                {"version": "2021.3.1f1", "location": []},
            ],
        }))
        editors = make_inspector(tmp_path).list_installed_editors()
        assert editors[0].version == "2022.3.60f1"
        assert editors[0].path == "/x/2022.3.60f1/Editor/Unity"
        assert editors[0].manual is True
        assert editors[1].path == ""

    def test_scan_adds_unknown_versions(self, tmp_path, linux_host):
        """Test scanned editors add to registry entries without overriding them."""
        base = tmp_path / "editors"
        make_editor(base, "2022.3.60f1")
        make_editor(base, "6000.0.23f1")
        (base / "not-a-version").mkdir()
        (base / "2021.3.1f1").mkdir()
        (linux_host / "editors-v2.json").write_text(json.dumps({
            "data": [{"version": "2022.3.60f1", "location": ["/registry/Unity"]}],
        }))

        editors = {e.version: e.path for e in make_inspector(tmp_path, scan=[base]).list_installed_editors()}

        assert editors == {
            "2022.3.60f1": "/registry/Unity",
            "6000.0.23f1": str(base / "6000.0.23f1" / "Editor" / "Unity"),
        }

    def test_secondary_install_path(self, tmp_path, linux_host):
        """Test the secondary install path is scanned first."""
        secondary = tmp_path / "external"
        (linux_host / "secondaryInstallPath.json").write_text(json.dumps(str(secondary)))
        inspector = InstallationInspector(hub_path="", install_path_cache=tmp_path / "c.json")
        assert inspector.scan_directories()[0] == str(secondary)

    def test_hub_cli_fallback(self, tmp_path):
        """Test the Hub CLI is queried when nothing else found editors."""
        result = MagicMock(returncode=0, stdout="2022.3.60f1 , installed at /x/Unity\n", stderr="")
        inspector = make_inspector(tmp_path, hub_path="/usr/bin/unity-hub")
        with patch("editor_catalog.installation.subprocess.run", return_value=result) as mock_run:
            editors = inspector.list_installed_editors()

        assert [e.version for e in editors] == ["2022.3.60f1"]
        cmd = mock_run.call_args[0][0]
        assert cmd == ["/usr/bin/unity-hub", "--", "--headless", "editors", "-i"]
        assert mock_run.call_args[1]["timeout"] > 0

    def test_hub_cli_failure(self, tmp_path):
        """Test a failing Hub CLI raises RegistryError."""
        inspector = make_inspector(tmp_path, hub_path="/usr/bin/unity-hub")
        with patch("editor_catalog.installation.subprocess.run",
                   side_effect=subprocess.TimeoutExpired(cmd="hub", timeout=30)):
            with pytest.raises(RegistryError):
                inspector.list_installed_editors()

    def test_hub_cli_nonzero_exit(self, tmp_path):
        """Test a non-zero exit raises RegistryError."""
        inspector = make_inspector(tmp_path, hub_path="/usr/bin/unity-hub")
        result = MagicMock(returncode=1, stdout="", stderr="boom")
        with patch("editor_catalog.installation.subprocess.run", return_value=result):
            with pytest.raises(RegistryError):
                inspector.list_installed_editors()


class TestGetInstallPath:
    """Tests for InstallationInspector.get_install_path."""

    def test_default_location_saved_to_cache(self, tmp_path):
        """Test an existing default location is used and cached."""
        base = tmp_path / "editors"
        base.mkdir()
        inspector = make_inspector(tmp_path, scan=[base])

        assert inspector.get_install_path() == str(base)
        cached = json.loads((tmp_path / "install-path.json").read_text())
        assert cached["path"] == str(base)

    def test_file_cache_used_first(self, tmp_path):
        """Test a fresh cache entry pointing to an existing path wins."""
        base = tmp_path / "cached"
        base.mkdir()
        from editor_catalog.common import utc_timestamp
        (tmp_path / "install-path.json").write_text(json.dumps({"path": str(base), "timestamp": utc_timestamp()}))

        assert make_inspector(tmp_path).get_install_path() == str(base)

    def test_expired_cache_ignored(self, tmp_path):
        """Test an entry older than the expiry is ignored."""
        base = tmp_path / "cached"
        base.mkdir()
        (tmp_path / "install-path.json").write_text(json.dumps({"path": str(base), "timestamp": "2000-01-01T00:00:00Z"}))

        assert make_inspector(tmp_path).get_install_path() is None

    def test_hub_query(self, tmp_path):
        """Test the Hub CLI is asked when defaults do not exist."""
        inspector = make_inspector(tmp_path, hub_path="/usr/bin/unity-hub")
        result = MagicMock(returncode=0, stdout="/data/editors\n", stderr="")
        with patch("editor_catalog.installation.subprocess.run", return_value=result) as mock_run:
            assert inspector.get_install_path() == "/data/editors"
            assert inspector.get_install_path() == "/data/editors"
        assert mock_run.call_count == 1
        assert mock_run.call_args[0][0][-2:] == ["install-path", "--get"]

    def test_undiscoverable(self, tmp_path):
        """Test None without defaults or Hub."""
        assert make_inspector(tmp_path).get_install_path() is None

    def test_env_base_path(self, tmp_path, monkeypatch):
        """Test EDITOR_CATALOG_EDITOR_BASE_PATH comes first."""
        custom = tmp_path / "ssd"
        monkeypatch.setenv("EDITOR_CATALOG_EDITOR_BASE_PATH", str(custom))
        inspector = InstallationInspector(hub_path="", install_path_cache=tmp_path / "c.json")
        assert inspector.default_install_paths()[0] == str(custom)


class TestIsInstalled:
    """Tests for InstallationInspector.is_installed."""

    def test_fast_path(self, tmp_path):
        """Test a version directory under the install path is found directly."""
        base = tmp_path / "editors"
        executable = make_editor(base, "2022.3.60f1")
        inspector = make_inspector(tmp_path, scan=[base])
        with patch.object(inspector, "list_installed_editors") as mock_list:
            assert inspector.is_installed("2022.3.60f1") == (True, str(executable))
        mock_list.assert_not_called()

    def test_registry_fallback(self, tmp_path, linux_host):
        """Test the registry is consulted when the fast path misses."""
        (linux_host / "editors-v2.json").write_text(json.dumps({
            "data": [{"version": "2021.3.1f1", "location": ["/elsewhere/Unity"]}],
        }))
        inspector = make_inspector(tmp_path)
        assert inspector.is_installed("2021.3.1f1") == (True, "/elsewhere/Unity")
        assert inspector.is_installed("2020.3.1f1") == (False, "")


class TestModules:
    """Tests for module checks."""

    def test_map_modules(self, tmp_path):
        """Test friendly names map to Hub ids and unknown names are dropped."""
        inspector = make_inspector(tmp_path)
        assert inspector.map_modules(["Windows", "ios", "bogus"]) == ["windows-il2cpp", "ios"]

    def test_config_module_aliases(self, tmp_path):
        """Test configured aliases extend the module map."""
        inspector = make_inspector(tmp_path, config=Config(modules={"droid": "android"}))
        assert inspector.map_modules(["droid"]) == ["android"]

    def test_directory_probe(self, tmp_path):
        """Test PlaybackEngines directories mark modules installed."""
        executable = make_editor(tmp_path / "editors", "2022.3.60f1", engines=["AndroidPlayer"])
        inspector = make_inspector(tmp_path)
        assert inspector.is_module_installed(executable, "android")
        assert not inspector.is_module_installed(executable, "ios")

    def test_modules_json_wins(self, tmp_path):
        """Test an explicit isInstalled overrides the directory probe."""
        executable = make_editor(tmp_path / "editors", "2022.3.60f1", engines=["AndroidPlayer"])
        (tmp_path / "editors" / "2022.3.60f1" / "modules.json").write_text(json.dumps([
            {"id": "android", "isInstalled": False},
            {"id": "ios", "isInstalled": True},
            {"id": "webgl", "isInstalled": None},
        ]))
        inspector = make_inspector(tmp_path)
        assert not inspector.is_module_installed(executable, "android")
        assert inspector.is_module_installed(executable, "ios")
        assert not inspector.is_module_installed(executable, "webgl")

    def test_missing_modules_nonexistent_path(self, tmp_path):
        """Test every requested module is missing for a nonexistent path."""
        inspector = make_inspector(tmp_path)
        assert inspector.missing_modules(tmp_path / "nope", ["ios", "android"]) == ["ios", "android"]

    def test_missing_modules_empty_request(self, tmp_path):
        """Test an empty request yields an empty list."""
        assert make_inspector(tmp_path).missing_modules(tmp_path / "nope", []) == []

    def test_unmapped_module_reported_missing(self, tmp_path):
        """Test ids without a known directory are reported missing."""
        executable = make_editor(tmp_path / "editors", "2022.3.60f1", engines=["AndroidPlayer"])
        inspector = make_inspector(tmp_path)
        assert inspector.missing_modules(executable, ["android", "mystery"]) == ["mystery"]

    def test_editor_changeset(self, tmp_path):
        """Test the changeset is read from version.txt."""
        executable = make_editor(tmp_path / "editors", "2022.3.20f1")
        resources = tmp_path / "editors" / "2022.3.20f1" / "Editor" / "Data" / "Resources"
        resources.mkdir(parents=True)
        (resources / "version.txt").write_text("2022.3.20f1 (f3a49e6e3c6e)\n")
        assert make_inspector(tmp_path).editor_changeset(executable) == "f3a49e6e3c6e"


class TestEnrich:
    """Tests for InstallationInspector.enrich."""

    def test_sets_install_state(self, tmp_path):
        """Test installed releases and modules are flagged."""
        base = tmp_path / "editors"
        executable = make_editor(base, "2022.3.60f1", engines=["AndroidPlayer"])
        releases = [
            ReleaseRecord(version="2022.3.60f1", modules=(ModuleRecord(id="android"), ModuleRecord(id="ios"))),
            ReleaseRecord(version="6000.0.23f1"),
        ]

        result = make_inspector(tmp_path, scan=[base]).enrich(releases)

        assert result[0].installed is True
        assert result[0].installed_path == str(executable)
        assert [m.installed for m in result[0].modules] == [True, False]
        assert result[1].installed is False
        assert releases[0].installed is False

    def test_registry_failure_returns_unchanged(self, tmp_path):
        """Test a registry failure leaves releases untouched."""
        inspector = make_inspector(tmp_path)
        releases = [ReleaseRecord(version="2022.3.60f1")]
        with patch.object(inspector, "list_installed_editors", side_effect=RegistryError("hub down")):
            assert inspector.enrich(releases) == releases
