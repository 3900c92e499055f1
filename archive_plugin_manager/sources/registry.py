"""Client for the remote package registry."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from ..cancellation import check_cancelled
from ..config import ManagerConfig
from ..errors import InvalidInputError, NetworkError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PackageMetadata:
    """Snapshot of a registry entry describing one plugin release."""

    name: str
    display_name: Optional[str]
    version: str
    archive_url: Optional[str]
    archive_checksum: Optional[str]
    distro_compat: Optional[str] = None
    version_compat: Optional[str] = None
    repository_name: Optional[str] = None
    author_alias: Optional[str] = None

    @classmethod
    def from_api_response(cls, payload: Dict[str, Any], package_kind: str) -> "PackageMetadata":
        """
        Build metadata from a registry package API response.

        Archive location, checksum and compatibility ranges live in the
        ``data`` object under ``<kind>/plugin/...`` keys.
        """
        if not isinstance(payload, dict):
            raise InvalidInputError("Invalid registry response: expected a JSON object")

        data = payload.get("data")
        if not isinstance(data, dict):
            raise InvalidInputError("Invalid registry response: missing 'data' object")

        repository = payload.get("repository") or {}
        if not isinstance(repository, dict):
            raise InvalidInputError("Invalid registry response: 'repository' is not an object")

        prefix = f"{package_kind}/plugin"

        return cls(
            name=payload.get("name"),
            display_name=payload.get("display_name"),
            version=payload.get("version"),
            archive_url=data.get(f"{prefix}/archive-url"),
            archive_checksum=data.get(f"{prefix}/archive-checksum"),
            distro_compat=data.get(f"{prefix}/distro-compat"),
            version_compat=data.get(f"{prefix}/version-compat"),
            repository_name=repository.get("name"),
            author_alias=repository.get("user_alias"),
        )


class RegistryClient:
    """Async client resolving registry package pages into PackageMetadata."""

    def __init__(self, config: ManagerConfig, client: Optional[httpx.AsyncClient] = None):
        """
        Initialize the registry client.

        Args:
            config: Manager configuration (registry URL and package kind)
            client: HTTP client to use. When omitted one is created and owned
                by this instance.
        """
        self.config = config
        self._owns_client = client is None
        self.session = client or httpx.AsyncClient(
            timeout=config.timeout,
            headers={"Accept": "application/json"},
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self.session.aclose()

    async def __aenter__(self) -> "RegistryClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def api_url(self, reference: str) -> str:
        """Translate a package page URL into its metadata API URL."""
        if not isinstance(reference, str) or not reference.startswith(self.config.package_page_prefix):
            raise InvalidInputError(
                f"Invalid URL {reference!r}. Please provide a package URL under "
                f"{self.config.package_page_prefix}"
            )
        return reference.replace(
            self.config.package_page_prefix, self.config.package_api_prefix, 1
        )

    async def fetch_package_metadata(self, reference: str, cancel_token=None) -> PackageMetadata:
        """
        Fetch metadata for the package behind a registry page URL.

        Raises:
            InvalidInputError: if the reference or response is malformed
            NetworkError: on transport failure or a non-success status
            CancelledError: if the token fired before the request was made
        """
        api_url = self.api_url(reference)
        check_cancelled(cancel_token)

        logger.info(f"Fetching plugin metadata from {api_url}")
        try:
            response = await self.session.get(api_url, follow_redirects=True)
        except httpx.HTTPError as e:
            raise NetworkError(f"Failed to fetch plugin metadata: {e}") from e

        if not response.is_success:
            raise NetworkError(
                f"HTTP error! status: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise InvalidInputError(f"Invalid registry response from {api_url}: {e}") from e

        return PackageMetadata.from_api_response(payload, self.config.package_kind)
