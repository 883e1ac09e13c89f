"""
Configuration Loader Service

Loads engine configuration from algoengine.json in the project root.
Environment variables always take precedence over config file values.

Config file location (in order of precedence):
1. ALGOENGINE_PROJECT_ROOT/algoengine.json (if ALGOENGINE_PROJECT_ROOT is set)
2. CWD/algoengine.json

Supported settings in algoengine.json:
{
    "complexity_warning_threshold": 5,          // -> ALGOENGINE_COMPLEXITY_WARNING_THRESHOLD
    "recognized_variables": "n,base,exponent",  // -> ALGOENGINE_RECOGNIZED_VARIABLES
    "system_variable_prefix": "system_",        // -> ALGOENGINE_SYSTEM_VARIABLE_PREFIX
    "optimizer_max_rounds": 10,                 // -> ALGOENGINE_OPTIMIZER_MAX_ROUNDS
    "max_iterations": 10000,                    // -> ALGOENGINE_MAX_ITERATIONS
    "expression_language": "javascript"         // -> ALGOENGINE_EXPRESSION_LANGUAGE
}
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from ..logging_config import configure_logger_for_debug_trace

logger = configure_logger_for_debug_trace(__name__)

CONFIG_FILENAME = "algoengine.json"


@dataclass(frozen=True)
class EngineConfig:
    """Resolved engine settings."""
    complexity_warning_threshold: int = 5
    recognized_variables: Tuple[str, ...] = (
        "n", "base", "exponent", "value", "value1", "value2",
    )
    system_variable_prefix: str = "system_"
    optimizer_max_rounds: int = 10
    max_iterations: int = 10000
    expression_language: str = "javascript"


class ConfigLoader:
    """
    Loads configuration from algoengine.json file.

    ::: This is-in-layer Service-Layer.
    ::: This is a loader.
    ::: This is stateless.

    Priority: Environment variables > algoengine.json > defaults
    """

    # Mapping from algoengine.json keys to environment variable names
    CONFIG_KEY_TO_ENV = {
        "complexity_warning_threshold": "ALGOENGINE_COMPLEXITY_WARNING_THRESHOLD",
        "recognized_variables": "ALGOENGINE_RECOGNIZED_VARIABLES",
        "system_variable_prefix": "ALGOENGINE_SYSTEM_VARIABLE_PREFIX",
        "optimizer_max_rounds": "ALGOENGINE_OPTIMIZER_MAX_ROUNDS",
        "max_iterations": "ALGOENGINE_MAX_ITERATIONS",
        "expression_language": "ALGOENGINE_EXPRESSION_LANGUAGE",
    }

    def __init__(self):
        self._config: Dict[str, Any] = {}
        self._config_path: Optional[Path] = None
        self._loaded = False
        self._engine_config: Optional[EngineConfig] = None

    def load(self, project_root: Optional[Path] = None) -> bool:
        """
        Load configuration from algoengine.json.

        Args:
            project_root: Project root directory. If None, uses
                ALGOENGINE_PROJECT_ROOT or CWD.

        Returns:
            True if config file was found and loaded, False otherwise.
        """
        if self._loaded:
            return self._config_path is not None

        if project_root is None:
            env_root = os.getenv("ALGOENGINE_PROJECT_ROOT")
            project_root = Path(env_root) if env_root else Path.cwd()

        config_path = Path(project_root) / CONFIG_FILENAME
        if config_path.exists():
            try:
                with open(config_path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                if not isinstance(data, dict):
                    raise ValueError("top-level value must be an object")
                self._config = data
                self._config_path = config_path
                logger.debug(f"Loaded config from: {config_path}")
            except json.JSONDecodeError as e:
                logger.warning(f"Invalid JSON in {config_path}: {e}")
            except (OSError, ValueError) as e:
                logger.warning(f"Error loading {config_path}: {e}")

        self._loaded = True
        self._engine_config = None
        return self._config_path is not None

    def get(self, key: str, default: Any = None) -> Any:
        """Get a raw config file value."""
        return self._config.get(key, default)

    def get_engine_config(self) -> EngineConfig:
        """
        Get the engine configuration with defaults applied.

        Returns:
            EngineConfig using env vars first, then the config file,
            then the dataclass defaults.
        """
        if self._engine_config is not None:
            return self._engine_config

        if not self._loaded:
            self.load()

        defaults = EngineConfig()
        resolved: Dict[str, Any] = {}
        for key, env_var in self.CONFIG_KEY_TO_ENV.items():
            default_value = getattr(defaults, key)
            env_value = os.getenv(env_var)
            if env_value is not None:
                resolved[key] = self._coerce(key, env_value, default_value)
            elif key in self._config:
                resolved[key] = self._coerce(key, self._config[key], default_value)
            else:
                resolved[key] = default_value

        self._engine_config = EngineConfig(**resolved)
        return self._engine_config

    @staticmethod
    def _coerce(key: str, value: Any, default_value: Any) -> Any:
        """Convert a file or env value to the type of its default."""
        if isinstance(default_value, tuple):
            if isinstance(value, str):
                items = [v.strip() for v in value.split(",")]
            elif isinstance(value, (list, tuple)):
                items = [str(v).strip() for v in value]
            else:
                logger.warning(f"Ignoring invalid value for {key}: {value!r}")
                return default_value
            return tuple(v for v in items if v)
        if isinstance(default_value, int):
            try:
                return int(value)
            except (TypeError, ValueError):
                logger.warning(f"Ignoring invalid value for {key}: {value!r}")
                return default_value
        return str(value)

    @property
    def config_path(self) -> Optional[Path]:
        """Path to the loaded config file, or None if not loaded."""
        return self._config_path

    @property
    def config(self) -> Dict[str, Any]:
        """The loaded configuration dictionary."""
        return self._config.copy()


# Global singleton instance
_config_loader: Optional[ConfigLoader] = None


def get_config_loader() -> ConfigLoader:
    """Get the global config loader instance."""
    global _config_loader
    if _config_loader is None:
        _config_loader = ConfigLoader()
    return _config_loader


def load_config(project_root: Optional[Path] = None) -> bool:
    """
    Load configuration from algoengine.json.

    Args:
        project_root: Project root directory. If None, auto-detects.

    Returns:
        True if config was loaded, False otherwise.
    """
    return get_config_loader().load(project_root)


def get_engine_config() -> EngineConfig:
    """Get the resolved engine configuration from the global loader."""
    return get_config_loader().get_engine_config()


def reset_config_loader() -> None:
    """Forget the global loader so the next call reloads configuration."""
    global _config_loader
    _config_loader = None
