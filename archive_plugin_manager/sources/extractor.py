"""Unpacking verified plugin archives into temporary folders."""

import io
import json
import logging
import tarfile
import tempfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Dict, Iterator, Optional, Tuple

from ..config import ManagerConfig
from ..core.store import MANAGED_FLAG_KEY, MANIFEST_FILE, PROVENANCE_KEY, read_manifest
from ..core.validation import validate_plugin_name
from ..errors import ArchiveError, InvalidPluginNameError, PluginIOError
from .registry import PackageMetadata

logger = logging.getLogger(__name__)

TEMP_PREFIX = "plugin-temp-"


@dataclass(frozen=True)
class Provenance:
    """Registry attribution recorded in an installed plugin's manifest."""

    name: str
    title: Optional[str]
    url: str
    version: str
    repo_name: Optional[str]
    author: Optional[str]

    @classmethod
    def from_metadata(cls, metadata: PackageMetadata, config: ManagerConfig) -> "Provenance":
        return cls(
            name=metadata.name,
            title=metadata.display_name,
            url=config.package_page_url(metadata.repository_name, metadata.name),
            version=metadata.version,
            repo_name=metadata.repository_name,
            author=metadata.author_alias,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "title": self.title,
            "url": self.url,
            "version": self.version,
            "repoName": self.repo_name,
            "author": self.author,
        }


def _strip_leading_component(members) -> Iterator[tarfile.TarInfo]:
    """Drop the single top-level folder registry archives are wrapped in."""
    for member in members:
        parts = PurePosixPath(member.name).parts
        if len(parts) <= 1:
            continue
        member.name = str(PurePosixPath(*parts[1:]))

        if member.islnk():
            link_parts = PurePosixPath(member.linkname).parts
            member.linkname = str(PurePosixPath(*link_parts[1:])) if len(link_parts) > 1 else ""

        yield member


class ArchiveExtractor:
    """Extracts verified archives and stamps them with provenance."""

    def __init__(self, config: ManagerConfig):
        self.config = config

    def _make_temp_dir(self) -> Path:
        parent = self.config.temp_dir
        try:
            if parent is not None:
                parent.mkdir(parents=True, exist_ok=True)
            return Path(tempfile.mkdtemp(prefix=TEMP_PREFIX, dir=parent))
        except OSError as e:
            raise PluginIOError(f"Could not create temporary directory: {e}") from e

    def unpack(self, data: bytes, destination: Path) -> None:
        """
        Unpack a gzip tarball into ``destination``, stripping one path component.

        Members that would be written outside ``destination`` (absolute
        paths, ``..`` segments, links pointing out) are refused.
        """
        try:
            with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as tar:
                tar.extractall(
                    destination,
                    members=_strip_leading_component(tar.getmembers()),
                    filter="data",
                )
        except (tarfile.TarError, EOFError) as e:
            raise ArchiveError(f"Could not extract plugin archive: {e}") from e
        except OSError as e:
            raise PluginIOError(f"Could not extract plugin archive: {e}") from e

    def write_provenance(self, folder: Path, provenance: Provenance) -> None:
        """Add provenance and the managed flag to the extracted manifest."""
        manifest_path = folder / MANIFEST_FILE
        if not manifest_path.is_file():
            raise ArchiveError(f"Plugin archive has no {MANIFEST_FILE}")

        manifest = read_manifest(folder)
        manifest[PROVENANCE_KEY] = provenance.to_dict()
        manifest[MANAGED_FLAG_KEY] = True

        try:
            with open(manifest_path, "w", encoding="utf-8") as f:
                json.dump(manifest, f, indent=2)
        except OSError as e:
            raise PluginIOError(f"Could not write manifest {manifest_path}: {e}") from e

    def extract(self, data: bytes, metadata: PackageMetadata) -> Tuple[str, Path]:
        """
        Extract verified archive bytes into a fresh temporary directory.

        Returns:
            Tuple of (plugin name, temporary directory)
        """
        name = metadata.name
        if not validate_plugin_name(name):
            raise InvalidPluginNameError(name)

        temp_dir = self._make_temp_dir()
        logger.info(f"Extracting plugin '{name}' into {temp_dir}")

        self.unpack(data, temp_dir)
        self.write_provenance(temp_dir, Provenance.from_metadata(metadata, self.config))
        return name, temp_dir
