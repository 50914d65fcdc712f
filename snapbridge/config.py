from __future__ import annotations

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(ValueError):
    pass


class Settings(BaseSettings):
    source_dir: str = ""
    dest_dir: str = ""
    workspace_dir: str = "."
    temp_folder_name: str = "Temp-Session-Snips"
    poll_interval_ms: int = 500
    auto_cleanup: bool = False
    clipboard_command: str = ""
    log_level: str = "INFO"
    log_file: str = ""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        case_sensitive=False,
    )

    @field_validator("poll_interval_ms")
    @classmethod
    def validate_poll_interval(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("poll_interval_ms must be > 0")
        return value


def resolve_source_dir(config: Settings) -> Path:
    raw = config.source_dir.strip()
    if not raw:
        raise ConfigurationError("SOURCE_DIR is not configured")
    return Path(raw).expanduser().resolve()


def resolve_destination_dir(config: Settings) -> Path:
    explicit = config.dest_dir.strip()
    if explicit:
        return Path(explicit).expanduser().resolve()
    folder_name = config.temp_folder_name.strip().lstrip(".")
    if not folder_name:
        raise ConfigurationError(
            "configure either DEST_DIR or TEMP_FOLDER_NAME for the destination"
        )
    workspace = Path(config.workspace_dir or ".").expanduser().resolve()
    return workspace / f".{folder_name}"


def ensure_destination_dir(path: Path) -> Path:
    """Create the destination directory if needed.

    Raises ConfigurationError when the path exists but is not a directory or
    cannot be created.
    """
    if path.exists() and not path.is_dir():
        raise ConfigurationError(f"destination is not a directory: {path}")
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigurationError(
            f"cannot create destination directory {path}: {exc}"
        ) from exc
    return path


settings = Settings()
