"""Configuration management for ggif.

Merges built-in defaults, an optional JSON config file and command-line
overrides into a single immutable :class:`Config` that is created once
at startup and shared read-only by every component.
"""

import json
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from ggif.errors import ConfigError
from ggif.platform_utils import get_default_config_file

logger = logging.getLogger(__name__)

# Cloud stores an artifact can be uploaded to
STORE_GCS = "gcs"
STORE_S3 = "s3"

DEFAULT_CONFIG: dict[str, Any] = {
    "log_level": "ERROR",
    "src": "",  # Empty = current working directory
    "dist": "",  # Empty = write GIFs next to the source videos
    "gcp_bucket": "",
    "s3_bucket": "",
    # ---- encoder ----
    "width": 480,
    "frames": 10,  # output frame rate
    "quality": 90,  # gifski quality, 1-100
    # ---- modes ----
    "watch": False,
    "upload_only": False,  # upload the video itself, no GIF conversion
    # ---- external tools ----
    "ffmpeg": "ffmpeg",
    "gifski": "gifski",
    "gsutil": "gsutil",
    "aws": "aws",
    "command_timeout": 0,  # seconds per external command (0 = no limit)
    # ---- watch mode ----
    "stable_seconds": 0,  # wait until a new file stops growing (0 = don't wait)
    # ---- log file ----
    "log_file": True,
    "max_log_size_mb": 10,
    "log_backup_count": 3,
}

# Alternative key spellings accepted in config files (flag names and the
# single-bucket key of older config files).
KEY_ALIASES: dict[str, str] = {
    "log": "log_level",
    "bucket": "gcp_bucket",
    "gcp-bucket": "gcp_bucket",
    "s3-bucket": "s3_bucket",
    "upload-only": "upload_only",
    "timeout": "command_timeout",
}

# Level names of the original tool that Python logging lacks.
LOG_LEVEL_ALIASES: dict[str, str] = {
    "NOTICE": "INFO",
}

_TRUE_STRINGS = ("true", "yes", "on", "1")
_FALSE_STRINGS = ("false", "no", "off", "0", "")


def parse_bool(value: Any, name: str) -> bool:
    """Interpret a JSON or command-line value as a boolean."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    raise ConfigError(f"{name} must be true or false, got {value!r}")


def normalize_keys(data: dict[str, Any]) -> dict[str, Any]:
    """Map aliased keys onto their canonical names, dropping unknown keys."""
    normalized: dict[str, Any] = {}
    for key, value in data.items():
        name = KEY_ALIASES.get(key, key)
        if name not in DEFAULT_CONFIG:
            logger.warning("Ignoring unknown config key: %s", key)
            continue
        normalized[name] = value
    return normalized


def load_config_file(path: Path | None = None, required: bool = False) -> dict[str, Any]:
    """
    Read a JSON config file and return its normalised contents.

    When *path* is None the dotfile in the home directory is used if it
    exists.  A *required* file that is missing or unreadable raises
    :class:`ConfigError`; an optional one is logged and ignored.
    """
    path = path or get_default_config_file()
    if not path.exists():
        if required:
            raise ConfigError(f"Config file not found: {path}")
        logger.debug("No config file at %s; using defaults.", path)
        return {}
    try:
        with open(path, encoding="utf-8") as fh:
            stored = json.load(fh)
    except (json.JSONDecodeError, OSError) as exc:
        if required:
            raise ConfigError(f"Could not read config {path}: {exc}") from exc
        logger.warning("Could not read config (%s); using defaults.", exc)
        return {}
    if not isinstance(stored, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    logger.info("Configuration loaded from %s", path)
    return normalize_keys(stored)


def _log_level_name(value: Any) -> str:
    name = str(value).strip().upper()
    return LOG_LEVEL_ALIASES.get(name, name)


@dataclass(frozen=True)
class Config:
    """Resolved, read-only configuration."""

    log_level: str = DEFAULT_CONFIG["log_level"]
    src: str = DEFAULT_CONFIG["src"]
    dist: str = DEFAULT_CONFIG["dist"]
    gcp_bucket: str = DEFAULT_CONFIG["gcp_bucket"]
    s3_bucket: str = DEFAULT_CONFIG["s3_bucket"]
    width: int = DEFAULT_CONFIG["width"]
    frames: int = DEFAULT_CONFIG["frames"]
    quality: int = DEFAULT_CONFIG["quality"]
    watch: bool = DEFAULT_CONFIG["watch"]
    upload_only: bool = DEFAULT_CONFIG["upload_only"]
    ffmpeg: str = DEFAULT_CONFIG["ffmpeg"]
    gifski: str = DEFAULT_CONFIG["gifski"]
    gsutil: str = DEFAULT_CONFIG["gsutil"]
    aws: str = DEFAULT_CONFIG["aws"]
    command_timeout: float = DEFAULT_CONFIG["command_timeout"]
    stable_seconds: float = DEFAULT_CONFIG["stable_seconds"]
    log_file: bool = DEFAULT_CONFIG["log_file"]
    max_log_size_mb: int = DEFAULT_CONFIG["max_log_size_mb"]
    log_backup_count: int = DEFAULT_CONFIG["log_backup_count"]

    @classmethod
    def resolve(
        cls,
        file_data: dict[str, Any] | None = None,
        overrides: dict[str, Any] | None = None,
    ) -> "Config":
        """
        Build a validated config from defaults, file values and overrides.

        Later sources win: defaults < config file < command-line overrides.
        ``None`` override values mean "not given" and are skipped.
        """
        data = dict(DEFAULT_CONFIG)
        data.update(normalize_keys(file_data or {}))
        data.update(
            {k: v for k, v in normalize_keys(overrides or {}).items() if v is not None}
        )
        try:
            config = cls(
                log_level=_log_level_name(data["log_level"]),
                src=str(data["src"] or ""),
                dist=str(data["dist"] or ""),
                gcp_bucket=str(data["gcp_bucket"] or ""),
                s3_bucket=str(data["s3_bucket"] or ""),
                width=int(data["width"]),
                frames=int(data["frames"]),
                quality=int(data["quality"]),
                watch=parse_bool(data["watch"], "watch"),
                upload_only=parse_bool(data["upload_only"], "upload_only"),
                ffmpeg=str(data["ffmpeg"]),
                gifski=str(data["gifski"]),
                gsutil=str(data["gsutil"]),
                aws=str(data["aws"]),
                command_timeout=float(data["command_timeout"]),
                stable_seconds=float(data["stable_seconds"]),
                log_file=parse_bool(data["log_file"], "log_file"),
                max_log_size_mb=int(data["max_log_size_mb"]),
                log_backup_count=int(data["log_backup_count"]),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid configuration value: {exc}") from exc
        config.validate()
        return config

    def validate(self) -> None:
        """Raise :class:`ConfigError` if any value is out of range."""
        if self.log_level not in logging.getLevelNamesMapping():
            raise ConfigError(f"Invalid log level: {self.log_level}")
        if not 1 <= self.quality <= 100:
            raise ConfigError(f"quality must be between 1 and 100, got {self.quality}")
        if self.frames <= 0:
            raise ConfigError(f"frames must be a positive integer, got {self.frames}")
        if self.width <= 0:
            raise ConfigError(f"width must be a positive integer, got {self.width}")
        if self.command_timeout < 0:
            raise ConfigError("command_timeout cannot be negative")
        if self.stable_seconds < 0:
            raise ConfigError("stable_seconds cannot be negative")

    # ---- derived values ----

    @property
    def level(self) -> int:
        """Return the numeric logging level."""
        return logging.getLevelNamesMapping()[self.log_level]

    @property
    def source_dir(self) -> Path:
        """Return the folder videos are read from."""
        return Path(self.src) if self.src else Path(os.getcwd())

    @property
    def output_dir(self) -> Path:
        """Return the folder GIFs are written to (falls back to the source)."""
        return Path(self.dist) if self.dist else self.source_dir

    def buckets(self) -> list[tuple[str, str]]:
        """Return ``(store, bucket)`` pairs for every configured bucket."""
        pairs = [(STORE_GCS, self.gcp_bucket), (STORE_S3, self.s3_bucket)]
        return [(store, bucket) for store, bucket in pairs if bucket]

    def as_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
