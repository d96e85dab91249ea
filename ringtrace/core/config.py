"""
Recorder configuration.

Defaults can be overridden from a YAML file::

    recorder:
      freq: 20
      tracefile: out/trace.json
      cursor_retry_delay: 0.1
      viewer_command: [perfetto-viewer]
"""

import logging
import math
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from ringtrace.core.errors import ConfigError

logger = logging.getLogger(__name__)

# Numeric options; YAML may hand over strings or other types
_NUMERIC_FIELDS = ("freq", "cursor_retry_delay", "cursor_timeout", "viewer_timeout", "terminate_timeout")
_OPTIONAL_FIELDS = ("cursor_timeout",)


@dataclass
class RecorderConfig:
    """Configuration for one recording session."""

    freq: float = 10.0  # Poll passes per second
    tracefile: Optional[Path] = None  # None = inside the session temp dir
    cursor_retry_delay: float = 0.1
    cursor_timeout: Optional[float] = None  # None = retry forever
    viewer_timeout: float = 1.0
    terminate_timeout: float = 5.0
    temp_prefix: str = "ringtrace-"
    viewer_command: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.tracefile is not None:
            try:
                self.tracefile = Path(self.tracefile)
            except TypeError as e:
                raise ConfigError(f"tracefile must be a path, got {self.tracefile!r}") from e
        for name in _NUMERIC_FIELDS:
            value = getattr(self, name)
            if value is None and name in _OPTIONAL_FIELDS:
                continue
            try:
                number = float(value)
            except (TypeError, ValueError) as e:
                raise ConfigError(f"{name} must be a number, got {value!r}") from e
            if math.isnan(number):
                raise ConfigError(f"{name} must be a number, got {value!r}")
            setattr(self, name, number)
        if self.freq <= 0:
            raise ConfigError(f"freq must be positive, got {self.freq!r}")
        if self.cursor_retry_delay < 0:
            raise ConfigError(f"cursor_retry_delay must be >= 0, got {self.cursor_retry_delay!r}")
        if self.cursor_timeout is not None and self.cursor_timeout <= 0:
            raise ConfigError(f"cursor_timeout must be positive, got {self.cursor_timeout!r}")
        if self.viewer_timeout < 0:
            raise ConfigError(f"viewer_timeout must be >= 0, got {self.viewer_timeout!r}")
        if self.terminate_timeout <= 0:
            raise ConfigError(f"terminate_timeout must be positive, got {self.terminate_timeout!r}")
        if isinstance(self.viewer_command, str):
            self.viewer_command = [self.viewer_command]
        self.viewer_command = list(self.viewer_command or [])

    @property
    def delay(self) -> float:
        """Seconds to sleep between poll passes."""
        return 1.0 / self.freq

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecorderConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown recorder options: {', '.join(unknown)}")
        return cls(**data)

    def with_overrides(self, **overrides: Any) -> "RecorderConfig":
        """Return a copy with every non-None override applied."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data.update({k: v for k, v in overrides.items() if v is not None})
        return RecorderConfig.from_dict(data)


def load_config(config_path: Union[str, Path]) -> RecorderConfig:
    """Load recorder configuration from a YAML file."""
    path = Path(config_path)

    if not path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    with open(path, "r") as f:
        try:
            config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(config, dict):
        raise ConfigError(f"Expected a mapping in {config_path}")

    section = config.get("recorder", {}) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'recorder' section in {config_path} must be a mapping")

    logger.debug(f"Loaded recorder config from {path}: {section}")
    return RecorderConfig.from_dict(section)
