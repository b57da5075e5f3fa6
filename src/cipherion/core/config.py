"""Configuration management for the Cipherion client and migrations."""

import math
import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field, replace
from typing import Any

from ..base import ErrorCallbackFunc, ProgressCallbackFunc
from ..errors import ConfigurationError
from ..models import ExclusionOptions

# Migration option bounds
MIN_BATCH_SIZE = 1
MAX_BATCH_SIZE = 100
MIN_RETRIES = 1
MAX_RETRIES = 10

LOG_LEVELS = ("error", "warn", "warning", "info", "debug")

# Environment variable names read by ClientConfig.from_env
ENV_PREFIX = "CIPHERION_"


def _clamp(value: int, lower: int, upper: int) -> int:
    return min(max(lower, value), upper)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass
class MigrationOptions:
    """Options for a batch encrypt/decrypt migration.

    Out-of-range numbers are clamped rather than rejected (see normalized());
    only values of the wrong type are errors.
    """

    batch_size: int = 10
    delay_between_batches: float = 1.0  # Seconds to wait between batches
    max_retries: int = 3  # Attempts per item, including the first

    on_progress: ProgressCallbackFunc | None = None
    on_error: ErrorCallbackFunc | None = None

    # Forwarded untouched to the remote operation
    exclusion_options: ExclusionOptions | Mapping[str, Any] | None = None

    # Item retry backoff: retry_base_delay * attempt + uniform(0, retry_max_jitter)
    retry_base_delay: float = 1.0
    retry_max_jitter: float = 0.5

    def validate(self) -> None:
        """Check option types before a migration starts."""
        if not _is_int(self.batch_size):
            raise ConfigurationError(
                f"batch_size must be an integer (got {type(self.batch_size).__name__}: "
                f"{self.batch_size!r}). Set options.batch_size to a whole number."
            )
        if not _is_number(self.delay_between_batches) or not math.isfinite(
            self.delay_between_batches
        ):
            raise ConfigurationError(
                f"delay_between_batches must be a finite number of seconds "
                f"(got {type(self.delay_between_batches).__name__}: "
                f"{self.delay_between_batches!r})."
            )
        if not _is_int(self.max_retries):
            raise ConfigurationError(
                f"max_retries must be an integer (got {type(self.max_retries).__name__}: "
                f"{self.max_retries!r}). Set options.max_retries to a whole number."
            )
        for name in ("retry_base_delay", "retry_max_jitter"):
            value = getattr(self, name)
            if not _is_number(value) or not math.isfinite(value) or value < 0:
                raise ConfigurationError(
                    f"{name} must be a finite non-negative number of seconds (got {value!r})."
                )
        for name in ("on_progress", "on_error"):
            hook = getattr(self, name)
            if hook is not None and not callable(hook):
                raise ConfigurationError(
                    f"{name} must be callable or None (got {type(hook).__name__})."
                )
        if self.exclusion_options is not None and not isinstance(
            self.exclusion_options, (ExclusionOptions, Mapping)
        ):
            raise ConfigurationError(
                f"exclusion_options must be an ExclusionOptions or a mapping "
                f"(got {type(self.exclusion_options).__name__})."
            )

    def normalized(self) -> "MigrationOptions":
        """Return a copy with batch_size, delay and max_retries clamped to their bounds."""
        self.validate()
        return replace(
            self,
            batch_size=_clamp(self.batch_size, MIN_BATCH_SIZE, MAX_BATCH_SIZE),
            delay_between_batches=max(0.0, float(self.delay_between_batches)),
            max_retries=_clamp(self.max_retries, MIN_RETRIES, MAX_RETRIES),
        )


@dataclass
class ClientConfig:
    """Connection settings for the Cipherion API."""

    base_url: str = ""
    project_id: str = ""
    api_key: str = field(default="", repr=False)
    passphrase: str = field(default="", repr=False)
    timeout: float = 30.0  # Seconds per HTTP request
    retries: int = 3
    log_level: str = "info"
    enable_logging: bool = True

    @classmethod
    def from_env(cls, **overrides: Any) -> "ClientConfig":
        """
        Build a config from explicit values, then environment, then defaults.

        A `.env` file in the working directory is loaded first. Empty or None
        overrides fall through to the environment.
        """
        from dotenv import load_dotenv

        load_dotenv()

        def pick(name: str, default: Any) -> Any:
            value = overrides.get(name)
            if value not in (None, ""):
                return value
            return os.getenv(ENV_PREFIX + name.upper()) or default

        timeout = pick("timeout", 30.0)
        try:
            timeout = float(timeout)
        except (TypeError, ValueError):
            raise ConfigurationError(
                f"timeout must be a number of seconds (got {timeout!r}). "
                f"Check {ENV_PREFIX}TIMEOUT."
            ) from None

        enable_logging = overrides.get("enable_logging")
        return cls(
            base_url=pick("base_url", ""),
            project_id=pick("project_id", ""),
            api_key=pick("api_key", ""),
            passphrase=pick("passphrase", ""),
            timeout=timeout,
            retries=overrides.get("retries") or 3,
            log_level=str(pick("log_level", "info")).lower(),
            enable_logging=enable_logging is not False,
        )

    def validate(self) -> None:
        """Validate required connection settings."""
        if not self.base_url:
            raise ConfigurationError(
                f"Base URL is required. Pass base_url or set {ENV_PREFIX}BASE_URL."
            )
        if not self.project_id:
            raise ConfigurationError(
                f"Project ID is required. Pass project_id or set {ENV_PREFIX}PROJECT_ID."
            )
        if not self.api_key:
            raise ConfigurationError(
                f"API Key is required. Pass api_key or set {ENV_PREFIX}API_KEY."
            )
        if self.log_level not in LOG_LEVELS:
            raise ConfigurationError(
                f"log_level must be one of {', '.join(LOG_LEVELS)} (got {self.log_level!r})."
            )

    def safe_dict(self) -> dict[str, Any]:
        """Return the configuration without credentials."""
        data = asdict(self)
        data.pop("api_key")
        data.pop("passphrase")
        return data
