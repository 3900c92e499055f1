"""Archive Plugin Manager - install, update and remove registry-hosted plugins."""

import logging

__version__ = "0.1.0"

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

from .cancellation import CancelToken
from .config import ConfigError, ManagerConfig, default_plugins_dir, get_config_path
from .core.store import InstalledPlugin, PluginStore
from .core.validation import validate_archive_url, validate_plugin_name
from .errors import (
    CancelledError,
    IncompatibleError,
    IntegrityError,
    InvalidInputError,
    InvalidPluginFolderError,
    NetworkError,
    NoUpdatesAvailableError,
    NotFoundError,
    PluginIOError,
    PluginManagerError,
    PluginNotFoundError,
)
from .events import EventKind, ProgressEvent
from .manager import PluginManager
from .sources.registry import PackageMetadata, RegistryClient

__all__ = [
    "CancelToken",
    "ConfigError",
    "ManagerConfig",
    "default_plugins_dir",
    "get_config_path",
    "InstalledPlugin",
    "PluginStore",
    "validate_archive_url",
    "validate_plugin_name",
    "CancelledError",
    "IncompatibleError",
    "IntegrityError",
    "InvalidInputError",
    "InvalidPluginFolderError",
    "NetworkError",
    "NoUpdatesAvailableError",
    "NotFoundError",
    "PluginIOError",
    "PluginManagerError",
    "PluginNotFoundError",
    "EventKind",
    "ProgressEvent",
    "PluginManager",
    "PackageMetadata",
    "RegistryClient",
]
