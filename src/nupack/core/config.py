"""User settings and path management for nupack."""

from pathlib import Path
from dataclasses import dataclass, field
import logging
import os

import yaml

from nupack.core.frameworks import RuntimeProfile
from nupack.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0
DEFAULT_ICON_TIMEOUT = 0.75


@dataclass
class NupackConfig:
    """Per-user configuration for nupack."""

    base_dir: Path
    cache_dir: Path
    icon_dir: Path
    settings_path: Path
    profile: RuntimeProfile = field(default_factory=RuntimeProfile)
    timeout: float = DEFAULT_TIMEOUT
    icon_timeout: float = DEFAULT_ICON_TIMEOUT
    verbose: bool = False

    @classmethod
    def default(cls) -> "NupackConfig":
        """Create config with default paths and settings.yaml applied.

        A settings.yaml holding the defaults is written when there is none.
        """
        base = Path(os.environ.get("NUPACK_HOME", Path.home() / ".nupack"))
        config = cls(
            base_dir=base,
            cache_dir=base / "cache",
            icon_dir=base / "icons",
            settings_path=base / "settings.yaml",
        )
        if config.settings_path.exists():
            config.load_settings()
        else:
            logger.info("No settings file found. Creating default at %s", config.settings_path)
            config.save_settings()
        return config

    def load_settings(self) -> None:
        """Apply settings.yaml on top of the defaults, if it exists."""
        if not self.settings_path.exists():
            return

        with open(self.settings_path) as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid settings file {self.settings_path}: {e}")

        if not isinstance(data, dict):
            raise ConfigError(f"Invalid settings file {self.settings_path}: expected a mapping")

        try:
            self.profile = RuntimeProfile.from_settings(data.get("runtime"))
        except ValueError as e:
            raise ConfigError(f"Invalid runtime settings in {self.settings_path}: {e}")

        self.timeout = float(data.get("timeout", self.timeout))
        self.icon_timeout = float(data.get("icon_timeout", self.icon_timeout))
        self.verbose = bool(data.get("verbose", self.verbose))
        logger.debug("Loaded settings from %s", self.settings_path)

    def save_settings(self) -> None:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        data = {
            "runtime": self.profile.to_settings(),
            "timeout": self.timeout,
            "icon_timeout": self.icon_timeout,
            "verbose": self.verbose,
        }
        with open(self.settings_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    def ensure_dirs(self) -> None:
        """Ensure all required directories exist."""
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.icon_dir.mkdir(parents=True, exist_ok=True)


# Global config instance
_config: NupackConfig | None = None


def get_config() -> NupackConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = NupackConfig.default()
    return _config


def set_config(config: NupackConfig | None) -> None:
    """Set a custom configuration (useful for testing)."""
    global _config
    _config = config
