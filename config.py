"""
Configuration for the Stayava booking assistant.

Settings come from environment variables (a local .env is honoured) and are
checked once at startup. Nothing here is required: without a Gemini key the
assistant answers from the rule-based fallback responder, and storage
defaults to a local SQLite file.
"""

import os
from dataclasses import dataclass, field, fields
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from dotenv import load_dotenv

from logger import get_logger

load_dotenv()

logger = get_logger(__name__)

DEFAULT_GEMINI_API_URL = (
    "https://generativelanguage.googleapis.com/v1beta/models/"
    "gemini-2.0-flash-lite:generateContent"
)


@dataclass
class ConfigValidationError:
    """A rejected setting. Critical ones stop the application from starting."""
    key: str
    message: str
    is_critical: bool = True


@dataclass
class AppConfig:
    """Application settings, one field per environment variable."""

    gemini_api_key: str = ""
    gemini_api_url: str = DEFAULT_GEMINI_API_URL
    gemini_timeout: float = 8.0
    gemini_temperature: float = 0.2
    gemini_max_output_tokens: int = 512

    database_url: str = "sqlite:///./stayava.db"

    typing_delay_ms: int = 1200
    max_prompt_chars: int = 2000
    session_ttl_hours: int = 24

    host: str = "0.0.0.0"
    port: int = 3090
    debug: bool = False
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in ("true", "1", "yes")


def _parse_origins(raw: str) -> List[str]:
    return [origin.strip() for origin in raw.split(",") if origin.strip()] or ["*"]


# Numeric settings and their accepted ranges. Out of range is a warning, or an error for PORT.
NUMERIC_RANGES: Dict[str, Tuple[float, float]] = {
    "GEMINI_TIMEOUT": (1, 30),
    "GEMINI_MAX_OUTPUT_TOKENS": (16, 4096),
    "TYPING_DELAY_MS": (0, 5000),
    "MAX_PROMPT_CHARS": (100, 10000),
    "SESSION_TTL_HOURS": (1, 720),
    "PORT": (1, 65535),
}

# Settings whose absence is worth a startup notice.
NOTICED_IF_MISSING = {
    "GEMINI_API_KEY": "every reply will come from the fallback responder",
    "DATABASE_URL": "conversations go to the local SQLite file",
}


class ConfigValidator:
    """Reads the environment into an AppConfig and reports bad values."""

    def __init__(self, environ: Optional[Dict[str, str]] = None):
        self.environ = environ if environ is not None else os.environ
        self.errors: List[ConfigValidationError] = []
        self.warnings: List[str] = []
        self.config: Optional[AppConfig] = None

    def _get(self, name: str) -> str:
        return (self.environ.get(name) or "").strip()

    def validate(self) -> bool:
        """
        Check every setting.

        Returns:
            bool: False when a critical error was found
        """
        self.errors = []
        self.warnings = []

        for name, consequence in NOTICED_IF_MISSING.items():
            if not self._get(name):
                self.warnings.append(f"{name} not set: {consequence}")

        self._check_gemini_url()
        self._check_database_url()
        for name, (low, high) in NUMERIC_RANGES.items():
            self._check_number(name, low, high)

        return not any(error.is_critical for error in self.errors)

    def _check_gemini_url(self) -> None:
        url = self._get("GEMINI_API_URL")
        if not url:
            return

        if urlparse(url).scheme != "https":
            self.errors.append(ConfigValidationError(
                key="GEMINI_API_URL",
                message=f"{url} is not an https URL",
                is_critical=False
            ))
            return

        host = urlparse(url).hostname or ""
        if not host.endswith("googleapis.com"):
            self.warnings.append(
                f"GEMINI_API_URL host '{host}' is not a googleapis.com endpoint, "
                "the completion client will refuse it"
            )

    def _check_database_url(self) -> None:
        url = self._get("DATABASE_URL")
        if url and "://" not in url:
            self.errors.append(ConfigValidationError(
                key="DATABASE_URL",
                message=f"{url} is not an SQLAlchemy URL (e.g. sqlite:///./stayava.db)",
                is_critical=True
            ))

    def _check_number(self, name: str, low: float, high: float) -> None:
        raw = self._get(name)
        if not raw:
            return
        try:
            value = float(raw)
        except ValueError:
            self.errors.append(ConfigValidationError(key=name, message=f"{raw!r} is not a number", is_critical=False))
            return

        if not low <= value <= high:
            if name == "PORT":
                self.errors.append(ConfigValidationError(
                    key=name, message=f"{raw} is outside [{low:g}, {high:g}]", is_critical=False
                ))
            else:
                self.warnings.append(f"{name}={raw} is outside recommended range [{low:g}, {high:g}]")

    def load_config(self) -> AppConfig:
        """
        Build the AppConfig. Unset or unparsable values keep the dataclass
        defaults.
        """
        readers: Dict[str, Tuple[str, Callable[[str], object]]] = {
            "gemini_api_key": ("GEMINI_API_KEY", str),
            "gemini_api_url": ("GEMINI_API_URL", str),
            "gemini_timeout": ("GEMINI_TIMEOUT", float),
            "gemini_temperature": ("GEMINI_TEMPERATURE", float),
            "gemini_max_output_tokens": ("GEMINI_MAX_OUTPUT_TOKENS", int),
            "database_url": ("DATABASE_URL", str),
            "typing_delay_ms": ("TYPING_DELAY_MS", int),
            "max_prompt_chars": ("MAX_PROMPT_CHARS", int),
            "session_ttl_hours": ("SESSION_TTL_HOURS", int),
            "host": ("HOST", str),
            "port": ("PORT", int),
            "debug": ("DEBUG", _parse_bool),
            "log_level": ("LOG_LEVEL", str),
            "cors_origins": ("CORS_ORIGINS", _parse_origins),
        }

        values = {}
        for config_field in fields(AppConfig):
            env_name, parse = readers[config_field.name]
            raw = self._get(env_name)
            if not raw:
                continue
            try:
                values[config_field.name] = parse(raw)
            except ValueError:
                continue

        self.config = AppConfig(**values)
        return self.config

    def report(self) -> None:
        """Log the validation outcome."""
        for error in self.errors:
            log = logger.critical if error.is_critical else logger.error
            log(f"Invalid {error.key}: {error.message}", key=error.key)

        for warning in self.warnings:
            logger.warning(warning)

        if not self.errors and not self.warnings:
            logger.info("All configuration values are valid")


def validate_config_on_startup() -> AppConfig:
    """
    Validate the environment and return the configuration.

    Raises:
        ValueError: If a critical setting is invalid
    """
    validator = ConfigValidator()
    is_valid = validator.validate()
    config = validator.load_config()
    validator.report()

    if not is_valid:
        details = ", ".join(f"{e.key}: {e.message}" for e in validator.errors if e.is_critical)
        raise ValueError(f"Cannot start application due to configuration errors: {details}")

    return config
