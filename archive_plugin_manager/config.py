"""Configuration loading and parsing for the plugin manager."""

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml


DEFAULT_APP_NAME = "Headlamp"
DEFAULT_REGISTRY_BASE_URL = "https://artifacthub.io"
DEFAULT_PACKAGE_KIND = "headlamp"


class ConfigError(Exception):
    """Raised when configuration is invalid."""

    pass


def _platform_dirs(app_name: str) -> tuple:
    """Return the (data, config) directories for ``app_name`` on this platform."""
    home = Path.home()

    if sys.platform == "darwin":
        library = home / "Library"
        return (
            library / "Application Support" / app_name,
            library / "Preferences" / app_name,
        )

    if sys.platform == "win32":
        local = Path(os.environ.get("LOCALAPPDATA") or home / "AppData" / "Local")
        roaming = Path(os.environ.get("APPDATA") or home / "AppData" / "Roaming")
        return local / app_name / "Data", roaming / app_name / "Config"

    data_home = os.environ.get("XDG_DATA_HOME") or home / ".local" / "share"
    config_home = os.environ.get("XDG_CONFIG_HOME") or home / ".config"
    return Path(data_home) / app_name, Path(config_home) / app_name


def default_plugins_dir(app_name: str = DEFAULT_APP_NAME) -> Path:
    """
    Get the default directory where plugins are installed.

    The platform data directory is used if it exists, otherwise the
    platform config directory. The ``plugins`` subdirectory of that base is
    returned; it is not created here.
    """
    data_dir, config_dir = _platform_dirs(app_name)
    base = data_dir if data_dir.exists() else config_dir
    return base / "plugins"


@dataclass
class ManagerConfig:
    """Settings injected into a PluginManager at construction."""

    app_name: str = DEFAULT_APP_NAME
    plugins_dir: Optional[Path] = None
    registry_base_url: str = DEFAULT_REGISTRY_BASE_URL
    package_kind: str = DEFAULT_PACKAGE_KIND
    host_version: str = ""
    timeout: float = 60.0
    lock_timeout: float = 30.0
    temp_dir: Optional[Path] = None

    def __post_init__(self) -> None:
        if self.plugins_dir is None:
            self.plugins_dir = default_plugins_dir(self.app_name)
        self.plugins_dir = Path(self.plugins_dir).expanduser()
        if self.temp_dir is not None:
            self.temp_dir = Path(self.temp_dir).expanduser()
        self.registry_base_url = self.registry_base_url.rstrip("/")
        self.host_version = str(self.host_version) if self.host_version else ""
        self.validate()

    @property
    def package_page_prefix(self) -> str:
        """URL prefix of human-facing package pages on the registry."""
        return f"{self.registry_base_url}/packages/{self.package_kind}/"

    @property
    def package_api_prefix(self) -> str:
        """URL prefix of the registry's package metadata API."""
        return f"{self.registry_base_url}/api/v1/packages/{self.package_kind}/"

    def package_page_url(self, repository_name: str, package_name: str) -> str:
        """Public page URL of a package, stored as installed plugin provenance."""
        return f"{self.package_page_prefix}{repository_name}/{package_name}"

    def validate(self) -> None:
        """Validate the configuration values."""
        if not self.registry_base_url.startswith(("https://", "http://")):
            raise ConfigError(f"registry_base_url must be an http(s) URL: {self.registry_base_url}")

        if not self.package_kind or "/" in self.package_kind:
            raise ConfigError(f"Invalid package_kind: {self.package_kind!r}")

        if self.timeout <= 0:
            raise ConfigError("timeout must be positive")

        if self.lock_timeout < 0:
            raise ConfigError("lock_timeout must not be negative")

    @classmethod
    def from_file(cls, path: Path) -> "ManagerConfig":
        """Load configuration from a YAML file."""
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}")
        except FileNotFoundError:
            raise ConfigError(f"Config file not found: {path}")

        if data is None:
            data = {}

        if not isinstance(data, dict):
            raise ConfigError(f"Invalid config in {path}: expected a mapping")

        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown config keys in {path}: {', '.join(sorted(unknown))}")

        try:
            return cls(**data)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid config in {path}: {e}")

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "ManagerConfig":
        """
        Build the effective configuration.

        Priority:
        1. Explicit ``path``, else the file found by get_config_path()
        2. PLUGIN_MANAGER_PLUGINS_DIR / PLUGIN_MANAGER_HOST_VERSION override
           the corresponding file values
        """
        path = path or get_config_path()
        config = cls.from_file(path) if path is not None else cls()

        env_dir = os.environ.get("PLUGIN_MANAGER_PLUGINS_DIR")
        if env_dir:
            config.plugins_dir = Path(env_dir).expanduser()

        env_version = os.environ.get("PLUGIN_MANAGER_HOST_VERSION")
        if env_version:
            config.host_version = env_version

        return config


def get_config_path() -> Optional[Path]:
    """
    Get the path to the manager configuration file.

    Priority:
    1. PLUGIN_MANAGER_CONFIG environment variable
    2. ~/.config/archive-plugin-manager/config.yaml

    Returns None if no config file exists.
    """
    env_path = os.environ.get("PLUGIN_MANAGER_CONFIG")
    if env_path:
        path = Path(env_path)
        if path.exists():
            return path
        return None

    home = Path.home()
    default_path = home / ".config" / "archive-plugin-manager" / "config.yaml"
    if default_path.exists():
        return default_path

    return None
