"""Configuration management for the market briefing pipeline.

This module provides centralized configuration for all pipeline components.
All settings are loaded from environment variables with sensible defaults.

Environment Variables:
    Required:
        OPENAI_API_KEY: API key for the analyst model

    Analyst:
        ANALYST_MODEL: Model identifier (default: gpt-4.1-mini)
        ANALYST_MAX_OUTPUT_TOKENS: Output token ceiling per call
        OPENAI_BASE_URL: Alternate OpenAI-compatible endpoint (optional)

    Feeds:
        FEED_TIMEOUT_SECONDS: Total timeout for the feed request

    Storage:
        DB_PATH: SQLite file holding latest briefs and history

    Targets:
        TARGETS_FILE: JSON file with a list of targets (optional; the
            built-in DEFAULT_TARGETS are used when unset)

    Optional Features:
        ENABLE_LOGFIRE: Enable Logfire/OpenTelemetry tracing

    Logging:
        LOG_LEVEL: Logging verbosity (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        LOG_BACKUP_COUNT: Number of rotated log files to keep
        LOG_MAX_BYTES: Max log file size in bytes (0 = time-based rotation)
        LOG_FORMAT: Log format ('text' or 'json' for structured logging)
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import TypeAdapter

from models.target import Target


def _env(key: str, default: str = "") -> str:
    """Get string environment variable with optional default."""
    return os.environ.get(key, default)


def _env_int(key: str, default: int) -> int:
    """Get integer environment variable with default.

    Raises:
        ValueError: If value is set but cannot be parsed as integer
    """
    val = os.environ.get(key)
    if not val:
        return default
    try:
        return int(val)
    except ValueError:
        raise ValueError(f"Invalid integer value for {key}: '{val}'")


def _env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable with default.

    Recognizes truthy values: '1', 'true', 'yes', 'on'
    Recognizes falsy values: '0', 'false', 'no', 'off'
    """
    val = os.environ.get(key, "").lower()
    if val in ("1", "true", "yes", "on"):
        return True
    if val in ("0", "false", "no", "off"):
        return False
    return default


# Briefing groups refreshed on every scheduled run
DEFAULT_TARGETS = [
    Target(key="us_market", topic="stock market", risk_level="medium", page_size=8),
    Target(
        key="tech_megacaps",
        tickers=["AAPL", "MSFT", "NVDA", "GOOGL", "AMZN"],
        risk_level="medium",
    ),
]

# Weekday triggers (Europe/Berlin). The scheduler itself lives outside this
# process and invokes `main.py run --reason <reason>`.
SCHEDULES: dict[str, str] = {
    "preopen": "0 15 * * 1-5",       # 15:00, 30m before the 15:30 US open
    "intraday": "0 16-22/3 * * 1-5",  # 16:00, 19:00, 22:00
    "postclose": "30 22 * * 1-5",    # 22:30, 30m after the 22:00 close
}
SCHEDULE_TIMEZONE = "Europe/Berlin"

_TARGET_LIST = TypeAdapter(list[Target])


def load_targets(path: Path | str | None) -> list[Target]:
    """Load the target list once at startup.

    Args:
        path: JSON file containing a list of target objects, or None/empty
              for the built-in defaults

    Returns:
        Validated targets

    Raises:
        OSError: If the file cannot be read
        pydantic.ValidationError: If an entry is not a valid target
    """
    if not path:
        return [t.model_copy() for t in DEFAULT_TARGETS]
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return _TARGET_LIST.validate_python(data)


@dataclass
class Config:
    """Application configuration loaded from environment variables.

    Example:
        >>> config = Config.load()
        >>> if error := config.validate():
        ...     print(f"Config error: {error}")
    """

    # === Required ===
    openai_api_key: str = ""  # OPENAI_API_KEY

    # === Analyst ===
    analyst_model: str = "gpt-4.1-mini"  # ANALYST_MODEL
    analyst_max_output_tokens: int = 250  # ANALYST_MAX_OUTPUT_TOKENS
    openai_base_url: str = ""  # OPENAI_BASE_URL - empty means the public API

    # === Feeds ===
    feed_timeout_seconds: int = 30  # FEED_TIMEOUT_SECONDS

    # === Storage ===
    db_path: Path = field(default_factory=lambda: Path("briefs.db"))  # DB_PATH

    # === Targets ===
    targets_file: str = ""  # TARGETS_FILE

    # === Output Directories ===
    log_dir: Path = field(default_factory=lambda: Path("log"))  # LOG_DIR

    # === Logging Configuration ===
    log_level: str = "INFO"  # LOG_LEVEL - DEBUG, INFO, WARNING, ERROR
    log_backup_count: int = 30  # LOG_BACKUP_COUNT
    log_max_bytes: int = 0  # LOG_MAX_BYTES - 0 = time-based rotation
    log_format: str = "text"  # LOG_FORMAT - 'text' or 'json'

    # === Optional: Observability ===
    # Requires: pip install logfire
    enable_logfire: bool = False  # ENABLE_LOGFIRE
    logfire_token: str = ""  # LOGFIRE_TOKEN

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment variables."""
        return cls(
            openai_api_key=_env("OPENAI_API_KEY"),
            analyst_model=_env("ANALYST_MODEL", "gpt-4.1-mini"),
            analyst_max_output_tokens=_env_int("ANALYST_MAX_OUTPUT_TOKENS", 250),
            openai_base_url=_env("OPENAI_BASE_URL"),
            feed_timeout_seconds=_env_int("FEED_TIMEOUT_SECONDS", 30),
            db_path=Path(_env("DB_PATH", "briefs.db")),
            targets_file=_env("TARGETS_FILE"),
            log_dir=Path(_env("LOG_DIR", "log")),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
            log_backup_count=_env_int("LOG_BACKUP_COUNT", 30),
            log_max_bytes=_env_int("LOG_MAX_BYTES", 0),
            log_format=_env("LOG_FORMAT", "text").lower(),
            enable_logfire=_env_bool("ENABLE_LOGFIRE", False),
            logfire_token=_env("LOGFIRE_TOKEN"),
        )

    def validate(self) -> str | None:
        """Validate configuration for required fields and valid values.

        Returns:
            Error message string if invalid, None if valid.
        """
        if not self.openai_api_key:
            return "OPENAI_API_KEY environment variable is required"
        if not self.analyst_model:
            return "ANALYST_MODEL must not be empty"
        if self.analyst_max_output_tokens <= 0:
            return "ANALYST_MAX_OUTPUT_TOKENS must be positive"
        if self.feed_timeout_seconds <= 0:
            return "FEED_TIMEOUT_SECONDS must be positive"
        if self.targets_file and not Path(self.targets_file).is_file():
            return f"TARGETS_FILE '{self.targets_file}' does not exist"
        if self.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            return f"Invalid LOG_LEVEL '{self.log_level}' - must be DEBUG, INFO, WARNING, ERROR, or CRITICAL"
        if self.log_format not in ("text", "json"):
            return f"Invalid LOG_FORMAT '{self.log_format}' - must be 'text' or 'json'"
        if self.log_backup_count < 0:
            return "LOG_BACKUP_COUNT must be non-negative"
        if self.log_max_bytes < 0:
            return "LOG_MAX_BYTES must be non-negative"
        return None
