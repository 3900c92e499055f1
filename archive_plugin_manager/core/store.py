"""On-disk collection of installed plugin folders."""

import json
import logging
import shutil
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from filelock import FileLock, Timeout

from ..errors import InvalidPluginFolderError, PluginIOError, PluginNotFoundError

logger = logging.getLogger(__name__)

ENTRY_POINT_FILE = "main.js"
MANIFEST_FILE = "package.json"
PROVENANCE_KEY = "provenance"
MANAGED_FLAG_KEY = "managedFlag"


@dataclass(frozen=True)
class InstalledPlugin:
    """A managed plugin folder as found in the plugins directory."""

    name: str
    title: Optional[str]
    version: Optional[str]
    folder_name: str
    path: Path
    registry_url: Optional[str] = None
    registry_version: Optional[str] = None
    repository_name: Optional[str] = None
    author: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["path"] = str(self.path)
        return data


def read_manifest(folder: Path) -> Dict[str, Any]:
    """Read and parse the manifest of a plugin folder."""
    manifest_path = Path(folder) / MANIFEST_FILE
    try:
        with open(manifest_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise PluginIOError(f"Could not read manifest {manifest_path}: {e}") from e

    if not isinstance(data, dict):
        raise PluginIOError(f"Manifest {manifest_path} is not a JSON object")
    return data


def is_valid_plugin_folder(folder: Path) -> bool:
    """
    Check if a folder is a plugin folder owned by the manager.

    A valid folder exists, contains the entry point and the manifest, and the
    manifest's managed flag is true.
    """
    folder = Path(folder)
    if not folder.is_dir():
        return False

    if not (folder / ENTRY_POINT_FILE).is_file() or not (folder / MANIFEST_FILE).is_file():
        return False

    try:
        manifest = read_manifest(folder)
    except PluginIOError as e:
        logger.warning(f"Ignoring plugin folder with unreadable manifest: {e}")
        return False

    return manifest.get(MANAGED_FLAG_KEY) is True


class PluginStore:
    """
    Filesystem-backed store of installed plugins.

    Plugins are identified by the name declared in their manifest, not by
    the folder they happen to live in. Mutating operations run under a
    per-folder file lock.
    """

    def __init__(self, root: Path, lock_timeout: float = 30.0):
        """
        Initialize the store.

        Args:
            root: Plugins directory. Created on demand, never assumed to exist.
            lock_timeout: Seconds to wait for a per-plugin lock
        """
        self.root = Path(root)
        self.lock_timeout = lock_timeout

    def _load_plugin(self, folder: Path) -> InstalledPlugin:
        manifest = read_manifest(folder)
        provenance = manifest.get(PROVENANCE_KEY)
        if not isinstance(provenance, dict):
            provenance = {}

        return InstalledPlugin(
            name=manifest.get("name") or folder.name,
            title=provenance.get("title"),
            version=manifest.get("version"),
            folder_name=folder.name,
            path=folder,
            registry_url=provenance.get("url"),
            registry_version=provenance.get("version"),
            repository_name=provenance.get("repoName"),
            author=provenance.get("author"),
        )

    def list(self) -> List[InstalledPlugin]:
        """List all valid plugins in the root; foreign folders are skipped."""
        if not self.root.is_dir():
            logger.debug(f"Plugins directory {self.root} does not exist")
            return []

        try:
            folders = sorted(p for p in self.root.iterdir() if p.is_dir())
        except OSError as e:
            raise PluginIOError(f"Could not read plugins directory {self.root}: {e}") from e

        plugins = []
        for folder in folders:
            if not is_valid_plugin_folder(folder):
                logger.debug(f"Skipping unmanaged folder: {folder.name}")
                continue
            try:
                plugins.append(self._load_plugin(folder))
            except PluginIOError as e:
                logger.warning(f"Skipping plugin folder {folder.name}: {e}")

        return plugins

    def find(self, name: str) -> InstalledPlugin:
        """Find an installed plugin by its manifest name."""
        for plugin in self.list():
            if plugin.name == name:
                return plugin
        raise PluginNotFoundError(name)

    def folder_for(self, name: str) -> Path:
        """Folder a freshly installed plugin called ``name`` is placed in."""
        return self.root / Path(name).name

    def lock(self, folder_name: str) -> FileLock:
        """File lock serializing changes to one plugin folder."""
        return FileLock(str(self.root / f".{folder_name}.lock"), timeout=self.lock_timeout)

    def _locked(self, folder_name: str) -> FileLock:
        self.ensure_root()
        lock = self.lock(folder_name)
        try:
            lock.acquire()
        except Timeout as e:
            raise PluginIOError(f"Timed out waiting for lock on {folder_name}") from e
        return lock

    def ensure_root(self) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PluginIOError(f"Could not create plugins directory {self.root}: {e}") from e

    def promote(self, temp_dir: Path, destination: Path) -> None:
        """
        Move an extracted plugin into its final location.

        The tree is copied first and the source removed only after the copy
        succeeded, so a failed copy never loses the extracted files.
        """
        temp_dir = Path(temp_dir)
        destination = Path(destination)

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copytree(temp_dir, destination, dirs_exist_ok=True)
        except (OSError, shutil.Error) as e:
            logger.error(f"Error moving directory from {temp_dir} to {destination}: {e}")
            raise PluginIOError(f"Could not install plugin into {destination}: {e}") from e

        try:
            shutil.rmtree(temp_dir)
        except OSError as e:
            raise PluginIOError(f"Could not remove temporary directory {temp_dir}: {e}") from e

        logger.info(f"Moved directory from {temp_dir} to {destination}")

    def _reset_folder(self, plugin_dir: Path) -> None:
        try:
            if plugin_dir.exists():
                shutil.rmtree(plugin_dir)
            plugin_dir.mkdir(parents=True)
        except OSError as e:
            raise PluginIOError(f"Could not replace plugin folder {plugin_dir}: {e}") from e

    def install(self, temp_dir: Path, name: str) -> Path:
        """
        Promote an extracted plugin into ``<root>/<name>``.

        An existing managed folder of that name is replaced entirely; a
        folder the manager does not own is left alone.

        Raises:
            InvalidPluginFolderError: if ``<root>/<name>`` exists but is not
                a managed plugin folder
        """
        destination = self.folder_for(name)
        lock = self._locked(destination.name)
        try:
            if destination.exists():
                if not is_valid_plugin_folder(destination):
                    raise InvalidPluginFolderError(destination)
                logger.info(f"Reinstalling over existing plugin folder {destination}")
                self._reset_folder(destination)
            self.promote(temp_dir, destination)
        finally:
            lock.release()
        return destination

    def replace(self, plugin_dir: Path, temp_dir: Path) -> None:
        """Replace an installed plugin folder with freshly extracted contents."""
        plugin_dir = Path(plugin_dir)
        lock = self._locked(plugin_dir.name)
        try:
            self._reset_folder(plugin_dir)
            self.promote(temp_dir, plugin_dir)
        finally:
            lock.release()

    def remove(self, plugin_dir: Path) -> None:
        """Remove a plugin folder, refusing anything the manager does not own."""
        plugin_dir = Path(plugin_dir)
        if not is_valid_plugin_folder(plugin_dir):
            raise InvalidPluginFolderError(plugin_dir)

        lock = self._locked(plugin_dir.name)
        try:
            shutil.rmtree(plugin_dir)
        except OSError as e:
            raise PluginIOError(f"Could not remove plugin folder {plugin_dir}: {e}") from e
        finally:
            lock.release()

        # The lock file outlives the folder otherwise.
        Path(lock.lock_file).unlink(missing_ok=True)
        logger.info(f"Removed plugin folder {plugin_dir}")
