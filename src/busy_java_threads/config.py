"""Configuration system for busy-java-threads."""

from dataclasses import dataclass, field
from pathlib import Path

import tomlkit

_LOG_LEVELS = {"debug", "info", "warning", "error"}


@dataclass
class SamplingConfig:
    """What to sample."""

    count: int = 5  # Busiest threads to show per round
    java_command: str = "java"  # Process command name treated as a JVM


@dataclass
class JstackConfig:
    """Dump tool settings."""

    path: str = ""  # Explicit jstack location; empty means PATH, then $JAVA_HOME
    lock_info: bool = False  # Always pass -l


@dataclass
class ElevationConfig:
    """How to dump processes owned by other users when running as root."""

    command: str = "sudo"


@dataclass
class LoggingConfig:
    """Diagnostic logging (stderr, optional JSON file)."""

    level: str = "warning"
    file: str = ""  # JSON Lines log file; empty disables it
    max_bytes: int = 5 * 1024 * 1024
    backup_count: int = 3


@dataclass
class Config:
    """Main configuration container."""

    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    jstack: JstackConfig = field(default_factory=JstackConfig)
    elevation: ElevationConfig = field(default_factory=ElevationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "busy-java-threads"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def log_path(self) -> Path | None:
        """JSON log file, if enabled."""
        return Path(self.logging.file).expanduser() if self.logging.file else None

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        All defaults come from the dataclass definitions.

        Raises:
            ValueError: If the file cannot be parsed or holds invalid values.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f)
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        return cls(
            sampling=_load_sampling_config(data.get("sampling", {})),
            jstack=_load_jstack_config(data.get("jstack", {})),
            elevation=_load_elevation_config(data.get("elevation", {})),
            logging=_load_logging_config(data.get("logging", {})),
        )


def _load_sampling_config(data: dict) -> SamplingConfig:
    """Load sampling config, validating the thread count."""
    d = SamplingConfig()
    count = data.get("count", d.count)
    if isinstance(count, bool) or not isinstance(count, int) or count < 1:
        raise ValueError(f"sampling.count must be an integer >= 1, got {count!r}")
    java_command = str(data.get("java_command", d.java_command))
    if not java_command:
        raise ValueError("sampling.java_command must not be empty")
    return SamplingConfig(count=count, java_command=java_command)


def _load_jstack_config(data: dict) -> JstackConfig:
    d = JstackConfig()
    lock_info = data.get("lock_info", d.lock_info)
    if not isinstance(lock_info, bool):
        raise ValueError(f"jstack.lock_info must be true or false, got {lock_info!r}")
    return JstackConfig(path=str(data.get("path", d.path)), lock_info=lock_info)


def _load_elevation_config(data: dict) -> ElevationConfig:
    d = ElevationConfig()
    command = str(data.get("command", d.command))
    if not command:
        raise ValueError("elevation.command must not be empty")
    return ElevationConfig(command=command)


def _is_count(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _load_logging_config(data: dict) -> LoggingConfig:
    """Load logging config from TOML data."""
    d = LoggingConfig()
    level = str(data.get("level", d.level)).lower()
    if level not in _LOG_LEVELS:
        raise ValueError(f"Invalid logging.level: {level!r}. Must be one of {sorted(_LOG_LEVELS)}")
    max_bytes = data.get("max_bytes", d.max_bytes)
    backup_count = data.get("backup_count", d.backup_count)
    if not _is_count(max_bytes):
        raise ValueError(f"logging.max_bytes must be an integer >= 0, got {max_bytes!r}")
    if not _is_count(backup_count):
        raise ValueError(f"logging.backup_count must be an integer >= 0, got {backup_count!r}")
    return LoggingConfig(
        level=level,
        file=str(data.get("file", d.file)),
        max_bytes=max_bytes,
        backup_count=backup_count,
    )
