"""Configuration loading from config.yaml"""

from pathlib import Path
from typing import Any, Optional
import yaml


class Config:
    """Configuration manager with dot-notation access.

    A single shared instance is kept so the host and the engine read the same
    file; passing a path always (re)loads that file.
    """

    _instance: Optional["Config"] = None
    _config: dict = {}

    def __new__(cls, config_path: Optional[str] = None):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, config_path: Optional[str] = None):
        if self._initialized and config_path is None:
            return

        if config_path is None:
            config_path = self._find_config()

        self._load(config_path)
        self._initialized = True

    def _find_config(self) -> str:
        """Find config.yaml in the project root."""
        current = Path(__file__).parent
        for _ in range(5):
            config_file = current / "config.yaml"
            if config_file.exists():
                return str(config_file)
            current = current.parent

        raise FileNotFoundError("config.yaml not found")

    def _load(self, config_path: str) -> None:
        with open(config_path, "r") as f:
            self._config = yaml.safe_load(f) or {}
        self._config_path = config_path

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load(self._config_path)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get config value using dot notation.

        Example:
            config.get("retarget.blend_factor", 0.4)
            config.get("rig.bone_prefix")
        """
        value = self._config

        for k in key.split("."):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """Set config value using dot notation (runtime only, not persisted)."""
        keys = key.split(".")
        config = self._config

        for k in keys[:-1]:
            if not isinstance(config.get(k), dict):
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value

    @property
    def app(self) -> dict:
        return self._config.get("app") or {}

    @property
    def retarget(self) -> dict:
        return self._config.get("retarget") or {}

    @property
    def rig(self) -> dict:
        return self._config.get("rig") or {}

    @property
    def bindings(self) -> Optional[list]:
        """Explicit binding list, or None to use the default Kinect table."""
        return self._config.get("bindings")

    @classmethod
    def reset_instance(cls) -> None:
        """Forget the shared instance (used by tests)."""
        cls._instance = None

    def __repr__(self) -> str:
        return f"Config({self._config_path})"
