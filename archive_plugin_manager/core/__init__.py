"""Core components for the plugin manager."""

from .store import InstalledPlugin, PluginStore, is_valid_plugin_folder
from .validation import validate_archive_url, validate_plugin_name
from .versions import is_newer, parse_version, satisfies

__all__ = [
    "InstalledPlugin",
    "PluginStore",
    "is_valid_plugin_folder",
    "validate_archive_url",
    "validate_plugin_name",
    "is_newer",
    "parse_version",
    "satisfies",
]
