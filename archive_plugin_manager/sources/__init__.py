"""Remote sources: registry metadata, archive download and extraction."""

from .extractor import ArchiveExtractor, Provenance
from .fetcher import ArchiveFetcher, compute_checksum, normalize_checksum
from .registry import PackageMetadata, RegistryClient

__all__ = [
    "ArchiveExtractor",
    "Provenance",
    "ArchiveFetcher",
    "compute_checksum",
    "normalize_checksum",
    "PackageMetadata",
    "RegistryClient",
]
