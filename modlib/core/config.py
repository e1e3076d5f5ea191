"""Configuration management using Pydantic and YAML."""

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator

from modlib.utils.inspector import SUPPORTED_EXTENSIONS


class DatabaseConfig(BaseModel):
    """Library store configuration."""

    path: Path = Field(default_factory=lambda: Path.home() / ".modlib" / "Mod Library.sqlite")
    backup: bool = True  # Copy the previous store to "<path>~" before opening

    @field_validator("path")
    @classmethod
    def _expand_home(cls, value: Path) -> Path:
        return value.expanduser()


class ScanConfig(BaseModel):
    """Directory scanning configuration."""

    supported_formats: list[str] = Field(default_factory=lambda: list(SUPPORTED_EXTENSIONS))
    recursive: bool = True
    ignored_suffixes: list[str] = [".bak", "~"]


class FingerprintConfig(BaseModel):
    """Audio fingerprint configuration."""

    enabled: bool = False  # Run fpcalc for every added/updated module
    fpcalc_path: str = "fpcalc"
    timeout_s: float = Field(gt=0, default=60.0)


class SearchConfig(BaseModel):
    """Search defaults."""

    default_order: str = "filename"
    limit: int | None = Field(ge=1, default=None)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    file: str | None = "modlib.log"  # None: log to stderr only

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return level


class ModLibraryConfig(BaseModel):
    """Main application configuration."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    scan: ScanConfig = Field(default_factory=ScanConfig)
    fingerprint: FingerprintConfig = Field(default_factory=FingerprintConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_path: Path | None = None) -> ModLibraryConfig:
    """Load configuration from YAML file.

    Args:
        config_path: Path to config file. If None, uses default location.

    Returns:
        ModLibraryConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config file is invalid
    """
    if config_path is None:
        # Try multiple locations
        possible_paths = [
            Path(__file__).parent.parent.parent / "config" / "config.yaml",
            Path.home() / ".config" / "modlib" / "config.yaml",
            Path.home() / ".modlib" / "config.yaml",
        ]

        for path in possible_paths:
            if path.exists():
                config_path = path
                break
        else:
            # Use default from package
            config_path = possible_paths[0]

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    return ModLibraryConfig(**data)
