"""High-level async client for the Cipherion crypto API."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import fields, replace
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from .base import MigrationResult
from .core import ClientConfig, MigrationOptions
from .errors import CipherionError, ConfigurationError
from .http import HttpClient
from .migration import MigrationHelper
from .models import (
    DecryptResponse,
    DeepDecryptResponse,
    DeepEncryptResponse,
    EncryptResponse,
    ExclusionOptions,
)
from .observers import MigrationObserver
from .validation import validate_data, validate_encrypted_data, validate_passphrase

logger = logging.getLogger(__name__)

TResponse = TypeVar("TResponse", bound=BaseModel)

_LOG_LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}

_SENSITIVE_FIELDS = ("api_key", "passphrase")

# Fields baked into the HttpClient; changing one rebuilds it
_TRANSPORT_FIELDS = {"base_url", "timeout", "retries"}


def _data_type(data: Any) -> str:
    if data is None:
        return "null"
    if isinstance(data, (list, tuple)):
        return "array"
    if isinstance(data, bool):
        return "boolean"
    if isinstance(data, (int, float)):
        return "number"
    if isinstance(data, str):
        return "string"
    return "object"


def _coerce_options(
    options: ExclusionOptions | Mapping[str, Any] | None,
) -> ExclusionOptions | None:
    if options is None or isinstance(options, ExclusionOptions):
        return options
    try:
        return ExclusionOptions.model_validate(dict(options))
    except (ValidationError, TypeError, ValueError) as e:
        raise ConfigurationError("Invalid exclusion options", details=str(e)[:500]) from e


class CipherionClient:
    """
    Async client for encrypting and decrypting data through the Cipherion API.

    Configuration comes from explicit arguments, then CIPHERION_* environment
    variables (a .env file is loaded), then defaults.

    Example:
        >>> async with CipherionClient(project_id="proj", api_key="key",
        ...                            base_url="https://api.example.com",
        ...                            passphrase="a-long-passphrase") as client:
        ...     encrypted = await client.deep_encrypt({"email": "jo@example.com"})
        ...     result = await client.migrate_encrypt(records, MigrationOptions(batch_size=20))
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        observers: list[MigrationObserver] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        **overrides: Any,
    ):
        """
        Initialize the client.

        Args:
            config: Complete configuration; when omitted it is built with
                ClientConfig.from_env(**overrides)
            observers: Observers notified of migration events
            transport: Optional httpx transport (for tests or custom networking)
            sleep: Coroutine used for retry and inter-batch delays
            **overrides: Individual ClientConfig fields
        """
        if config is None:
            config = ClientConfig.from_env(**overrides)
        elif overrides:
            config = replace(config, **overrides)
        config.validate()

        self.config = config
        self._transport = transport
        self._sleep = sleep
        logging.getLogger("cipherion").setLevel(_LOG_LEVELS[config.log_level])

        self._http = self._build_http_client()
        self.migration_helper = MigrationHelper(self, observers=observers, sleep=sleep)

        if config.enable_logging:
            logger.info("✓ CipherionClient initialized")

    def _build_http_client(self, config: ClientConfig | None = None) -> HttpClient:
        config = config or self.config
        return HttpClient(
            config.base_url,
            config.api_key,
            timeout=config.timeout,
            max_retries=config.retries,
            transport=self._transport,
            sleep=self._sleep,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._http.aclose()

    # -- crypto operations -------------------------------------------------

    async def encrypt(self, data: str) -> str:
        """
        Encrypt a single string.

        Returns:
            The encrypted output string
        """

        async def call() -> EncryptResponse:
            validate_data(data)
            passphrase = self._require_passphrase()
            validate_passphrase(passphrase)
            return await self._post(
                EncryptResponse, "encrypt", {"data": data, "passphrase": passphrase}
            )

        response = await self._run_operation(
            "encrypt", call, data_type=_data_type(data), data_length=_length(data)
        )
        return response.data.encrypted_output

    async def decrypt(self, encrypted_data: str) -> str:
        """
        Decrypt a string produced by encrypt().

        Returns:
            The plaintext string
        """

        async def call() -> DecryptResponse:
            validate_encrypted_data(encrypted_data)
            passphrase = self._require_passphrase()
            return await self._post(
                DecryptResponse, "decrypt", {"data": encrypted_data, "passphrase": passphrase}
            )

        response = await self._run_operation(
            "decrypt",
            call,
            data_type=_data_type(encrypted_data),
            data_length=_length(encrypted_data),
        )
        return response.data.plaintext

    async def deep_encrypt(
        self,
        data: Any,
        options: ExclusionOptions | Mapping[str, Any] | None = None,
    ) -> Any:
        """
        Encrypt a structured value while preserving its shape.

        Args:
            data: Any JSON-serializable value
            options: Fields/patterns the server should leave unencrypted

        Returns:
            The encrypted structure

        Example:
            >>> await client.deep_encrypt(user, {"exclude_fields": ["profile.id"],
            ...                                  "exclude_patterns": ["_id", "*_at"]})
        """
        exclusion = _coerce_options(options)

        async def call() -> DeepEncryptResponse:
            validate_data(data)
            passphrase = self._require_passphrase()
            validate_passphrase(passphrase)
            payload = {"data": data, "passphrase": passphrase}
            if exclusion is not None:
                payload.update(exclusion.to_payload(include_fail_gracefully=False))
            return await self._post(DeepEncryptResponse, "deep_encrypt", payload)

        response = await self._run_operation(
            "deep_encrypt", call, data_type=_data_type(data), **_exclusion_details(exclusion)
        )
        return response.data.encrypted

    async def deep_decrypt(
        self,
        encrypted_data: Any,
        options: ExclusionOptions | Mapping[str, Any] | None = None,
    ) -> Any:
        """
        Decrypt a structure produced by deep_encrypt().

        With fail_gracefully=True the server keeps fields it cannot decrypt
        instead of failing the whole call.

        Args:
            encrypted_data: The encrypted structure
            options: Exclusions and fail_gracefully flag

        Returns:
            The decrypted structure
        """
        exclusion = _coerce_options(options)

        async def call() -> DeepDecryptResponse:
            validate_encrypted_data(encrypted_data)
            passphrase = self._require_passphrase()
            payload = {"encrypted": encrypted_data, "passphrase": passphrase}
            if exclusion is not None:
                payload.update(exclusion.to_payload())
            return await self._post(DeepDecryptResponse, "deep_decrypt", payload)

        details = _exclusion_details(exclusion)
        if exclusion is not None and exclusion.fail_gracefully is not None:
            details["fail_gracefully"] = exclusion.fail_gracefully
        response = await self._run_operation(
            "deep_decrypt", call, data_type=_data_type(encrypted_data), **details
        )
        return response.data.data

    # -- migrations --------------------------------------------------------

    async def migrate_encrypt(
        self,
        items: Sequence[Any],
        options: MigrationOptions | Mapping[str, Any] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> MigrationResult:
        """
        Encrypt every item with deep_encrypt in rate-limited batches.

        Per-item failures are returned in result.failed, not raised.
        """
        return await self._run_migration(
            "migrate_encrypt",
            self.migration_helper.run_encrypt_migration,
            items,
            options,
            cancel_event,
        )

    async def migrate_decrypt(
        self,
        items: Sequence[Any],
        options: MigrationOptions | Mapping[str, Any] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> MigrationResult:
        """Decrypt every item with deep_decrypt in rate-limited batches."""
        return await self._run_migration(
            "migrate_decrypt",
            self.migration_helper.run_decrypt_migration,
            items,
            options,
            cancel_event,
        )

    async def _run_migration(
        self,
        operation: str,
        runner: Callable[..., Awaitable[MigrationResult]],
        items: Sequence[Any],
        options: MigrationOptions | Mapping[str, Any] | None,
        cancel_event: asyncio.Event | None,
    ) -> MigrationResult:
        if not self.config.passphrase:
            raise CipherionError("Passphrase is required for migration", 400)

        # Reject malformed exclusion options up front instead of once per item
        if isinstance(options, MigrationOptions):
            _coerce_options(options.exclusion_options)
        elif isinstance(options, Mapping):
            _coerce_options(options.get("exclusion_options"))

        if self.config.enable_logging:
            total = len(items) if isinstance(items, Sequence) else "?"
            logger.info(f"ℹ️  {operation} started | total_items={total}")

        try:
            result = await runner(items, options, cancel_event)
        except Exception as e:
            if self.config.enable_logging:
                logger.error(f"✗ {operation} error | {type(e).__name__}: {e}")
            raise

        if self.config.enable_logging:
            summary = result.summary
            logger.info(
                f"✓ {operation} completed | total_items={summary.total}, "
                f"processed={summary.processed}, successful={summary.successful}, "
                f"failed={summary.failed}, percentage={summary.percentage}"
            )
        return result

    # -- configuration -----------------------------------------------------

    def get_config(self) -> dict[str, Any]:
        """Return the current configuration without api_key and passphrase."""
        return self.config.safe_dict()

    async def update_config(self, **changes: Any) -> None:
        """
        Update non-sensitive configuration fields.

        Raises:
            CipherionError: (403) when api_key or passphrase is passed
            ConfigurationError: For unknown fields or an invalid result
        """
        if any(changes.get(name) for name in _SENSITIVE_FIELDS):
            logger.warning("⚠️  Attempted to update sensitive credentials - operation ignored")
            raise CipherionError(
                "Cannot update api_key or passphrase after initialization. "
                "Create a new client instance instead.",
                403,
            )
        changes = {k: v for k, v in changes.items() if k not in _SENSITIVE_FIELDS}

        known = {f.name for f in fields(ClientConfig)}
        unknown = sorted(set(changes) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration field(s): {', '.join(unknown)}")

        new_config = replace(self.config, **changes)
        new_config.validate()

        # Build the new transport first; a rejected value leaves the client unchanged
        new_http = None
        if _TRANSPORT_FIELDS & changes.keys():
            new_http = self._build_http_client(new_config)

        self.config = new_config
        if new_http is not None:
            old_http, self._http = self._http, new_http
            await old_http.aclose()

        if "log_level" in changes:
            logging.getLogger("cipherion").setLevel(_LOG_LEVELS[new_config.log_level])

        if self.config.enable_logging:
            logger.info(f"ℹ️  Configuration updated | updated_fields={sorted(changes)}")

    # -- internals ---------------------------------------------------------

    def _require_passphrase(self) -> str:
        if not self.config.passphrase:
            raise CipherionError("Passphrase is required", 400)
        return self.config.passphrase

    async def _post(
        self, model: type[TResponse], operation: str, payload: dict[str, Any]
    ) -> TResponse:
        body = await self._http.post(
            f"/api/v1/crypto/{operation}/{self.config.project_id}", payload
        )
        try:
            return model.model_validate(body)
        except ValidationError as e:
            raise CipherionError(
                "Invalid API response format", 500, details=str(e)[:500], original_error=e
            ) from e

    async def _run_operation(
        self,
        operation: str,
        call: Callable[[], Awaitable[TResponse]],
        **details: Any,
    ) -> TResponse:
        """Run one API call, timing and logging it; any failure surfaces as CipherionError."""
        start_time = time.time()
        try:
            response = await call()
        except CipherionError as e:
            self._log_operation(
                operation, "error", start_time,
                status_code=e.status_code, error_message=e.message, **details,
            )
            raise
        except Exception as e:
            self._log_operation(
                operation, "error", start_time,
                status_code=500, error_message=str(e), **details,
            )
            raise CipherionError(str(e) or type(e).__name__, 500, original_error=e) from e

        meta = getattr(getattr(response, "data", None), "meta", None)
        if meta is not None:
            details["total_fields"] = meta.total_fields
            details["billable_fields"] = meta.billable_fields
        self._log_operation(operation, "success", start_time, status_code=200, **details)
        return response

    def _log_operation(
        self, operation: str, status: str, start_time: float, **details: Any
    ) -> None:
        if not self.config.enable_logging:
            return
        duration_ms = int((time.time() - start_time) * 1000)
        fields_str = ", ".join(f"{k}={v}" for k, v in details.items())
        if status == "success":
            logger.info(f"✓ {operation} success | duration_ms={duration_ms}, {fields_str}")
        else:
            logger.error(f"✗ {operation} error | duration_ms={duration_ms}, {fields_str}")


def _length(data: Any) -> int | None:
    try:
        return len(data)
    except TypeError:
        return None


def _exclusion_details(exclusion: ExclusionOptions | None) -> dict[str, Any]:
    return {
        "excluded_fields": len(exclusion.exclude_fields or []) if exclusion else 0,
        "excluded_patterns": len(exclusion.exclude_patterns or []) if exclusion else 0,
    }
