"""Plugin Manager - Orchestrates plugin installation and lifecycle."""

import asyncio
import logging
from contextlib import aclosing
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Tuple, Union

import httpx

from .cancellation import CancelToken, check_cancelled
from .config import ManagerConfig
from .core.store import InstalledPlugin, PluginStore
from .core.validation import validate_archive_url, validate_plugin_name
from .core.versions import is_newer, satisfies
from .errors import (
    IncompatibleError,
    InvalidArchiveUrlError,
    InvalidInputError,
    InvalidPluginFolderError,
    InvalidPluginNameError,
    NoUpdatesAvailableError,
    PluginManagerError,
    PluginNotFoundError,
)
from .events import EventKind, ProgressCallback, ProgressEvent
from .sources.extractor import ArchiveExtractor
from .sources.fetcher import ArchiveFetcher
from .sources.registry import PackageMetadata, RegistryClient

logger = logging.getLogger(__name__)

Emit = Callable[[ProgressEvent], None]
Source = Union[str, PackageMetadata]


def _discard(event: ProgressEvent) -> None:
    pass


class PluginManager:
    """
    Main orchestrator for plugin lifecycle operations.

    Coordinates:
    - Resolving registry package pages into metadata
    - Validating names, archive locations and compatibility
    - Downloading and verifying archives
    - Extracting and promoting plugins into the plugins directory

    Every operation is available in two forms. The ``*_events`` methods are
    async iterators of ProgressEvent ending in exactly one SUCCESS or ERROR
    event. The plain methods consume that stream: with ``on_progress`` every
    event is forwarded and failures are reported only as an ERROR event;
    without it the failure is raised and the result returned.
    """

    def __init__(
        self,
        config: Optional[ManagerConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the plugin manager.

        Args:
            config: Manager configuration. Defaults to ManagerConfig.load().
            client: HTTP client shared by the registry client and the
                archive fetcher. If omitted the manager creates and owns one
                on the first network operation.
        """
        self.config = config or ManagerConfig.load()
        self.extractor = ArchiveExtractor(self.config)

        self._owns_client = client is None
        self._session = client
        self._registry: Optional[RegistryClient] = None
        self._fetcher: Optional[ArchiveFetcher] = None

    @property
    def session(self) -> httpx.AsyncClient:
        if self._session is None:
            self._session = httpx.AsyncClient(
                timeout=self.config.timeout,
                headers={"Accept": "application/json"},
            )
        return self._session

    @property
    def registry(self) -> RegistryClient:
        if self._registry is None:
            self._registry = RegistryClient(self.config, client=self.session)
        return self._registry

    @property
    def fetcher(self) -> ArchiveFetcher:
        if self._fetcher is None:
            self._fetcher = ArchiveFetcher(self.session)
        return self._fetcher

    async def aclose(self) -> None:
        if self._owns_client and self._session is not None:
            await self._session.aclose()
            self._session = None
            self._registry = None
            self._fetcher = None

    async def __aenter__(self) -> "PluginManager":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def store(self, destination_dir: Optional[Path] = None) -> PluginStore:
        """Store for ``destination_dir``, defaulting to the configured plugins directory."""
        root = Path(destination_dir) if destination_dir is not None else self.config.plugins_dir
        return PluginStore(root, lock_timeout=self.config.lock_timeout)

    # ------------------------------------------------------------------
    #  Event plumbing
    # ------------------------------------------------------------------
    async def _stream(
        self,
        pipeline: Callable[[Emit], Awaitable[Any]],
        success_message: str,
    ) -> AsyncIterator[ProgressEvent]:
        queue: "asyncio.Queue[Optional[ProgressEvent]]" = asyncio.Queue()

        async def run() -> None:
            try:
                data = await pipeline(queue.put_nowait)
            except PluginManagerError as e:
                logger.error(f"Operation failed: {e}")
                queue.put_nowait(ProgressEvent.failure(e))
            else:
                queue.put_nowait(ProgressEvent.success(success_message, data))
            finally:
                queue.put_nowait(None)

        task = asyncio.create_task(run())
        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield event
            # Surface anything that is not a PluginManagerError.
            await task
        finally:
            if not task.done():
                task.cancel()

    async def _deliver(
        self,
        events: AsyncIterator[ProgressEvent],
        on_progress: Optional[ProgressCallback],
    ) -> Any:
        result = None
        async with aclosing(events) as stream:
            async for event in stream:
                if on_progress is not None:
                    on_progress(event)
                elif event.kind is EventKind.ERROR:
                    raise event.error
                if event.kind is EventKind.SUCCESS:
                    result = event.data
        return result

    def _report(
        self,
        pipeline: Callable[[Emit], Any],
        success_message: str,
        on_progress: Optional[ProgressCallback],
    ) -> Any:
        emit = on_progress or _discard
        try:
            data = pipeline(emit)
        except PluginManagerError as e:
            if on_progress is None:
                raise
            logger.error(f"Operation failed: {e}")
            on_progress(ProgressEvent.failure(e))
            return None
        emit(ProgressEvent.success(success_message, data))
        return data

    # ------------------------------------------------------------------
    #  Pipeline stages
    # ------------------------------------------------------------------
    async def _resolve(self, source: Source, emit: Emit, cancel_token) -> PackageMetadata:
        if isinstance(source, PackageMetadata):
            return source

        emit(ProgressEvent.info("Fetching Plugin Metadata"))
        metadata = await self.registry.fetch_package_metadata(source, cancel_token)
        check_cancelled(cancel_token)
        return metadata

    def _check_compatibility(self, metadata: PackageMetadata, host_version: str, emit: Emit) -> None:
        if not host_version:
            return

        emit(ProgressEvent.info("Checking compatibility with host version"))
        if not metadata.version_compat:
            logger.info(f"Plugin '{metadata.name}' declares no version range, assuming compatible")
        else:
            try:
                compatible = satisfies(host_version, metadata.version_compat)
            except InvalidInputError as e:
                raise IncompatibleError(f"Could not check compatibility: {e}") from e
            if not compatible:
                raise IncompatibleError(
                    f"Host version {host_version} is not compatible with the plugin "
                    f"(requires {metadata.version_compat})"
                )
        emit(ProgressEvent.info("Host version is compatible"))

    async def _download_extract(
        self,
        metadata: PackageMetadata,
        host_version: str,
        emit: Emit,
        cancel_token,
    ) -> Tuple[str, Path]:
        check_cancelled(cancel_token)

        if not validate_plugin_name(metadata.name):
            raise InvalidPluginNameError(metadata.name)

        if not validate_archive_url(metadata.archive_url):
            raise InvalidArchiveUrlError(metadata.archive_url)

        if not metadata.archive_checksum:
            raise InvalidInputError("Invalid plugin metadata. Please check the plugin details.")

        self._check_compatibility(metadata, host_version, emit)
        check_cancelled(cancel_token)

        emit(ProgressEvent.info("Downloading Plugin"))
        data = await self.fetcher.fetch_and_verify(
            metadata.archive_url, metadata.archive_checksum, cancel_token
        )
        emit(ProgressEvent.info("Plugin Downloaded"))

        emit(ProgressEvent.info("Extracting Plugin"))
        name, temp_dir = await asyncio.to_thread(self.extractor.extract, data, metadata)
        check_cancelled(cancel_token)
        emit(ProgressEvent.info("Plugin Extracted"))

        return name, temp_dir

    async def _install(
        self,
        source: Source,
        destination_dir: Optional[Path],
        host_version: str,
        emit: Emit,
        cancel_token,
    ) -> Dict[str, Any]:
        check_cancelled(cancel_token)
        metadata = await self._resolve(source, emit, cancel_token)
        name, temp_dir = await self._download_extract(metadata, host_version, emit, cancel_token)

        store = self.store(destination_dir)
        destination = await asyncio.to_thread(store.install, temp_dir, name)
        logger.info(f"Installed plugin '{name}' {metadata.version} into {destination}")
        return {"name": name, "version": metadata.version, "path": str(destination)}

    async def _update(
        self,
        name: str,
        destination_dir: Optional[Path],
        host_version: str,
        emit: Emit,
        cancel_token,
    ) -> Dict[str, Any]:
        check_cancelled(cancel_token)
        if not validate_plugin_name(name):
            raise InvalidPluginNameError(name)

        store = self.store(destination_dir)
        plugin = store.find(name)
        if not plugin.registry_url:
            raise InvalidInputError(f"Plugin '{name}' has no registry URL to update from")

        emit(ProgressEvent.info("Fetching Plugin Metadata"))
        metadata = await self.registry.fetch_package_metadata(plugin.registry_url, cancel_token)
        check_cancelled(cancel_token)

        current = plugin.registry_version
        if current is None:
            raise InvalidInputError(f"Plugin '{name}' has no recorded registry version")
        if not is_newer(metadata.version, current):
            raise NoUpdatesAvailableError(name, current, metadata.version)

        _, temp_dir = await self._download_extract(metadata, host_version, emit, cancel_token)
        await asyncio.to_thread(store.replace, plugin.path, temp_dir)
        logger.info(f"Updated plugin '{name}' from {current} to {metadata.version}")
        return {"name": plugin.name, "version": metadata.version, "path": str(plugin.path)}

    def _uninstall(self, name: str, destination_dir: Optional[Path]) -> Dict[str, Any]:
        if not validate_plugin_name(name):
            raise InvalidPluginNameError(name)

        store = self.store(destination_dir)
        try:
            plugin = store.find(name)
        except PluginNotFoundError:
            # A folder by that name exists but is not managed by us.
            candidate = store.folder_for(name)
            if candidate.is_dir():
                raise InvalidPluginFolderError(candidate)
            raise

        store.remove(plugin.path)
        return {"name": plugin.name, "path": str(plugin.path)}

    # ------------------------------------------------------------------
    #  Event stream API
    # ------------------------------------------------------------------
    def install_events(
        self,
        source: Source,
        destination_dir: Optional[Path] = None,
        host_version: Optional[str] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> AsyncIterator[ProgressEvent]:
        """Install a plugin from a registry page URL or resolved metadata."""
        version = self.config.host_version if host_version is None else host_version
        return self._stream(
            lambda emit: self._install(source, destination_dir, version, emit, cancel_token),
            "Plugin Installed",
        )

    def update_events(
        self,
        name: str,
        destination_dir: Optional[Path] = None,
        host_version: Optional[str] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> AsyncIterator[ProgressEvent]:
        """Update an installed plugin to the latest registry version."""
        version = self.config.host_version if host_version is None else host_version
        return self._stream(
            lambda emit: self._update(name, destination_dir, version, emit, cancel_token),
            "Plugin Updated",
        )

    def resolve_metadata_events(
        self,
        source: str,
        cancel_token: Optional[CancelToken] = None,
    ) -> AsyncIterator[ProgressEvent]:
        """Fetch package metadata for a registry page URL."""
        return self._stream(
            lambda emit: self._resolve(source, emit, cancel_token),
            "Plugin Metadata Fetched",
        )

    # ------------------------------------------------------------------
    #  Callback / raise API
    # ------------------------------------------------------------------
    async def install(
        self,
        source: Source,
        destination_dir: Optional[Path] = None,
        host_version: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Install a plugin.

        Args:
            source: Registry package page URL, or already fetched metadata
            destination_dir: Plugins directory. Defaults to the configured one.
            host_version: Host version to check compatibility against.
                Defaults to the configured host version; empty skips the check.
            on_progress: Optional callback receiving every ProgressEvent
            cancel_token: Optional token to cancel the download

        Returns:
            Dict with the installed plugin's name, version and path, or None
            if the operation failed and was reported to ``on_progress``
        """
        return await self._deliver(
            self.install_events(source, destination_dir, host_version, cancel_token),
            on_progress,
        )

    async def update(
        self,
        name: str,
        destination_dir: Optional[Path] = None,
        host_version: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Update an installed plugin, replacing its folder entirely.

        Raises NoUpdatesAvailableError (or reports it) when the registry
        version is not strictly newer than the installed one.
        """
        return await self._deliver(
            self.update_events(name, destination_dir, host_version, cancel_token),
            on_progress,
        )

    async def resolve_metadata(
        self,
        source: str,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> Optional[PackageMetadata]:
        return await self._deliver(self.resolve_metadata_events(source, cancel_token), on_progress)

    def uninstall(
        self,
        name: str,
        destination_dir: Optional[Path] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Optional[Dict[str, Any]]:
        """Remove an installed plugin. Folders not owned by the manager are refused."""
        return self._report(
            lambda emit: self._uninstall(name, destination_dir),
            "Plugin Uninstalled",
            on_progress,
        )

    def list(
        self,
        destination_dir: Optional[Path] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Optional[List[InstalledPlugin]]:
        """List installed plugins."""
        return self._report(
            lambda emit: self.store(destination_dir).list(),
            "Plugins Listed",
            on_progress,
        )
