"""Error types raised by the plugin manager."""

from typing import Optional


class PluginManagerError(Exception):
    """Base class for every failure the manager reports to its caller."""

    kind = "error"


class InvalidInputError(PluginManagerError):
    """Raised for malformed names, URLs, references or metadata."""

    kind = "invalid_input"


class InvalidPluginNameError(InvalidInputError):
    """Raised when a plugin name could escape the plugins directory."""

    def __init__(self, name: str):
        super().__init__(f"Invalid plugin name: {name!r}")
        self.name = name


class InvalidArchiveUrlError(InvalidInputError):
    """Raised when an archive URL is not hosted on an allowed provider."""

    def __init__(self, url: str):
        super().__init__(f"Invalid plugin/archive-url: {url}")
        self.url = url


class IncompatibleError(PluginManagerError):
    """Raised when the host version is outside a plugin's compatibility range."""

    kind = "incompatible"


class IntegrityError(PluginManagerError):
    """Raised when downloaded bytes cannot be trusted."""

    kind = "integrity"


class ArchiveError(IntegrityError):
    """Raised when a verified archive cannot be unpacked safely."""

    pass


class NotFoundError(PluginManagerError):
    kind = "not_found"


class PluginNotFoundError(NotFoundError):
    def __init__(self, name: str):
        super().__init__(f"Plugin not found: {name}")
        self.name = name


class NoUpdatesAvailableError(PluginManagerError):
    """Raised when the registry has nothing newer than the installed version."""

    kind = "no_updates"

    def __init__(self, name: str, installed: str, latest: str):
        super().__init__(
            f"No updates available for {name} (installed {installed}, latest {latest})"
        )
        self.name = name
        self.installed = installed
        self.latest = latest


class InvalidPluginFolderError(InvalidInputError):
    def __init__(self, path):
        super().__init__(f"Invalid plugin folder: {path}")
        self.path = path


class CancelledError(PluginManagerError):
    """Raised when the caller's cancel token fires."""

    kind = "cancelled"

    def __init__(self, message: str = "Download cancelled"):
        super().__init__(message)


class PluginIOError(PluginManagerError):
    kind = "io"


class NetworkError(PluginManagerError):
    """Raised for transport failures and non-success HTTP responses."""

    kind = "network"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
