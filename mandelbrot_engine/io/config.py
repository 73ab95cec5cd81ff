"""
Engine configuration loading.

Settings are resolved from built-in defaults, an optional JSON file and
``MANDELBROT_ENGINE_*`` environment variables, in that order.
"""

import json
import os
from typing import Any, Dict, Mapping, Optional, Union
from dataclasses import dataclass, asdict, fields
from pathlib import Path
import logging

from ..core.interlace import DEFAULT_INTERLACE_GAP
from ..core.math_functions import ESCAPE_LIMIT, SMOOTHING_ITERATIONS
from ..rendering.coloring import DEFAULT_PALETTE_SIZE

logger = logging.getLogger(__name__)

ENV_PREFIX = "MANDELBROT_ENGINE_"


@dataclass
class EngineConfig:
    """Tunable settings of a RenderController."""

    # Work partitioning
    interlace_gap: int = DEFAULT_INTERLACE_GAP
    max_workers: Optional[int] = None  # None = one thread per CPU

    # Coloring
    palette_size: int = DEFAULT_PALETTE_SIZE

    # Iteration
    escape_limit: float = ESCAPE_LIMIT
    smoothing_iterations: int = SMOOTHING_ITERATIONS

    # Supersampling RNG; None draws fresh entropy for every pass
    seed: Optional[int] = None

    # Ask the OS to run the render worker at reduced priority
    low_priority: bool = True

    def validate(self):
        """Validate configuration parameters."""
        if self.interlace_gap < 1:
            raise ValueError("interlace_gap must be >= 1")

        if self.max_workers is not None and self.max_workers < 1:
            raise ValueError("max_workers must be >= 1")

        if self.palette_size < 1:
            raise ValueError("palette_size must be positive")

        if self.escape_limit <= 0:
            raise ValueError("escape_limit must be positive")

        if self.smoothing_iterations < 0:
            raise ValueError("smoothing_iterations must be >= 0")

        if self.seed is not None and self.seed < 0:
            raise ValueError("seed must be non-negative")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'EngineConfig':
        """Create configuration from dictionary, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
        config = cls(**data)
        config.validate()
        return config


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")


def _parse_optional_int(value: str) -> Optional[int]:
    if value.strip().lower() in ("", "none"):
        return None
    return int(value)


_ENV_PARSERS = {
    'interlace_gap': int,
    'max_workers': _parse_optional_int,
    'palette_size': int,
    'escape_limit': float,
    'smoothing_iterations': int,
    'seed': _parse_optional_int,
    'low_priority': _parse_bool,
}


class EnvironmentConfig:
    """Reads configuration overrides from environment variables."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None, prefix: str = ENV_PREFIX):
        self.environ = os.environ if environ is None else environ
        self.prefix = prefix

    def get_overrides(self) -> Dict[str, Any]:
        """Collect parsed values for every variable that is set."""
        overrides = {}
        for name, parser in _ENV_PARSERS.items():
            key = self.prefix + name.upper()
            if key in self.environ:
                try:
                    overrides[name] = parser(self.environ[key])
                except ValueError as e:
                    raise ValueError(f"Invalid value for {key}: {e}") from e
        return overrides

    def apply(self, config: EngineConfig) -> EngineConfig:
        """Return a copy of ``config`` with environment overrides applied."""
        overrides = self.get_overrides()
        if overrides:
            logger.debug(f"Environment overrides: {overrides}")
        data = config.to_dict()
        data.update(overrides)
        return EngineConfig.from_dict(data)


class ConfigManager:
    """Loads and saves engine configuration files."""

    def load_config(self, filepath: Union[str, Path]) -> EngineConfig:
        """
        Load configuration from a JSON file.

        Args:
            filepath: Path to a JSON object with EngineConfig fields

        Returns:
            Validated EngineConfig
        """
        filepath = Path(filepath)
        with open(filepath, 'r') as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise ValueError(f"Configuration file {filepath} must contain a JSON object")

        config = EngineConfig.from_dict(data)
        logger.info(f"Loaded configuration: {filepath}")
        return config

    def save_config(self, config: EngineConfig, filepath: Union[str, Path]) -> None:
        """Save configuration as JSON."""
        filepath = Path(filepath)
        with open(filepath, 'w') as f:
            json.dump(config.to_dict(), f, indent=2)
        logger.info(f"Saved configuration: {filepath}")


def load_config_from_args(config_file: Optional[Union[str, Path]] = None,
                          environ: Optional[Mapping[str, str]] = None) -> EngineConfig:
    """Resolve configuration from defaults, an optional file and the environment."""
    if config_file:
        config = ConfigManager().load_config(config_file)
    else:
        config = EngineConfig()
    return EnvironmentConfig(environ).apply(config)
