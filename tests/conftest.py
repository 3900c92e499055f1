"""Pytest configuration and shared fixtures."""

import hashlib
import io
import json
import tarfile
import tempfile
from pathlib import Path
from typing import Callable, Dict, Generator, Optional

import httpx
import pytest

PAGE_URL = "https://artifacthub.io/packages/headlamp/test-repo/my-plugin"
API_URL = "https://artifacthub.io/api/v1/packages/headlamp/test-repo/my-plugin"
ARCHIVE_URL = "https://github.com/owner/my-plugin/releases/download/v0.2.0/my-plugin-0.2.0.tar.gz"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Clear plugin manager environment variables."""
    env_vars = [
        "PLUGIN_MANAGER_CONFIG",
        "PLUGIN_MANAGER_PLUGINS_DIR",
        "PLUGIN_MANAGER_HOST_VERSION",
    ]
    for var in env_vars:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def plugins_dir(temp_dir: Path) -> Path:
    """Plugins root; deliberately not created."""
    return temp_dir / "plugins"


@pytest.fixture
def config(temp_dir: Path, plugins_dir: Path):
    """Manager configuration rooted in the temporary directory."""
    from archive_plugin_manager.config import ManagerConfig

    return ManagerConfig(plugins_dir=plugins_dir, temp_dir=temp_dir / "tmp")


@pytest.fixture
def make_archive() -> Callable[..., bytes]:
    """Build a gzip tarball whose files sit under one top-level folder."""

    def _make(files: Dict[str, str], top: str = "package") -> bytes:
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
            top_info = tarfile.TarInfo(top)
            top_info.type = tarfile.DIRTYPE
            top_info.mode = 0o755
            tar.addfile(top_info)

            for name, content in files.items():
                data = content.encode("utf-8")
                info = tarfile.TarInfo(f"{top}/{name}")
                info.size = len(data)
                info.mode = 0o644
                tar.addfile(info, io.BytesIO(data))
        return buffer.getvalue()

    return _make


@pytest.fixture
def plugin_archive(make_archive) -> bytes:
    """A well-formed plugin archive at version 0.2.0."""
    manifest = {"name": "my-plugin", "version": "0.2.0", "main": "main.js"}
    return make_archive(
        {
            "main.js": "console.log('my-plugin');\n",
            "package.json": json.dumps(manifest),
        }
    )


@pytest.fixture
def registry_payload() -> Callable[..., dict]:
    """Registry API response describing ``archive`` bytes."""

    def _payload(
        archive: bytes,
        name: str = "my-plugin",
        version: str = "0.2.0",
        archive_url: str = ARCHIVE_URL,
        checksum: Optional[str] = None,
        version_compat: str = ">=0.20.0",
    ) -> dict:
        return {
            "name": name,
            "display_name": "My Plugin",
            "version": version,
            "repository": {"name": "test-repo", "user_alias": "tester"},
            "data": {
                "headlamp/plugin/archive-url": archive_url,
                "headlamp/plugin/archive-checksum": checksum
                or f"sha256:{hashlib.sha256(archive).hexdigest()}",
                "headlamp/plugin/distro-compat": "in-cluster,web,app",
                "headlamp/plugin/version-compat": version_compat,
            },
        }

    return _payload


@pytest.fixture
def mock_client() -> Callable[..., httpx.AsyncClient]:
    """AsyncClient answering from a URL -> response mapping (404 otherwise)."""

    def _client(routes: Dict[str, object], seen: Optional[list] = None) -> httpx.AsyncClient:
        def handler(request: httpx.Request) -> httpx.Response:
            url = str(request.url)
            if seen is not None:
                seen.append(url)
            route = routes.get(url)
            if route is None:
                return httpx.Response(404)
            if callable(route):
                return route(request)
            # Fresh copy so one route can serve repeated requests.
            return httpx.Response(route.status_code, headers=route.headers, content=route.content)

        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _client


@pytest.fixture
def make_plugin_folder() -> Callable[..., Path]:
    """Create a plugin folder on disk as the manager would leave it."""

    def _make(
        root: Path,
        folder: str,
        name: Optional[str] = None,
        version: str = "0.1.0",
        managed: bool = True,
        entry_point: bool = True,
        registry_version: Optional[str] = None,
    ) -> Path:
        plugin_dir = root / folder
        plugin_dir.mkdir(parents=True)

        manifest = {"version": version}
        if name is not None:
            manifest["name"] = name
        manifest["provenance"] = {
            "name": name or folder,
            "title": "My Plugin",
            "url": PAGE_URL,
            "version": registry_version or version,
            "repoName": "test-repo",
            "author": "tester",
        }
        if managed:
            manifest["managedFlag"] = True

        (plugin_dir / "package.json").write_text(json.dumps(manifest, indent=2))
        if entry_point:
            (plugin_dir / "main.js").write_text("console.log('installed');\n")
        return plugin_dir

    return _make
