"""HTTP transport for the Cipherion API."""

import asyncio
import json
import logging
from typing import Any

import httpx

from .errors import CipherionError, ConfigurationError
from .strategies import ExponentialBackoffStrategy, RetryStrategy, retry_async
from .strategies.retry import SleepFunc

logger = logging.getLogger(__name__)

USER_AGENT = "Cipherion-SDK/1.0"

MIN_TIMEOUT = 1.0
MAX_TIMEOUT = 300.0


class HttpClient:
    """
    Thin async JSON client with transport-level retries.

    Network failures, timeouts, rate limits and 5xx responses are retried with
    exponential backoff (1s, 2s, 4s ... plus jitter, capped at 10s). Any other
    non-2xx response raises CipherionError immediately.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 30.0,
        max_retries: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_strategy: RetryStrategy | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        """
        Initialize the HTTP client.

        Args:
            base_url: API root, e.g. "https://api.cipherion.example"
            api_key: Sent as the x-api-key header
            timeout: Per-request timeout in seconds (1-300)
            max_retries: Retries after the first attempt for retryable errors
            transport: Optional httpx transport (e.g. httpx.MockTransport in tests)
            retry_strategy: Delay strategy between retries
            sleep: Coroutine used to wait between retries
        """
        self._validate_configuration(base_url, api_key, timeout, max_retries)
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max(0, max_retries)
        self.retry_strategy = retry_strategy or ExponentialBackoffStrategy(
            initial_delay=1.0, exponential_base=2.0, max_delay=10.0, max_jitter=0.5
        )
        self._sleep = sleep
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={
                "Content-Type": "application/json",
                "x-api-key": api_key,
                "User-Agent": USER_AGENT,
            },
            follow_redirects=False,
            transport=transport,
        )

    @staticmethod
    def _validate_configuration(
        base_url: str, api_key: str, timeout: float, max_retries: int
    ) -> None:
        if not base_url or not isinstance(base_url, str):
            raise ConfigurationError("Invalid base URL provided")
        if not api_key or not isinstance(api_key, str):
            raise ConfigurationError("Invalid API key provided")
        if not isinstance(timeout, (int, float)) or isinstance(timeout, bool):
            raise ConfigurationError(
                f"Timeout must be a number of seconds (got {type(timeout).__name__}: {timeout!r})"
            )
        if not MIN_TIMEOUT <= timeout <= MAX_TIMEOUT:
            raise ConfigurationError(
                f"Timeout must be between {MIN_TIMEOUT:g}s and {MAX_TIMEOUT:g}s (got {timeout})"
            )
        if not isinstance(max_retries, int) or isinstance(max_retries, bool):
            raise ConfigurationError(
                f"Retries must be an integer (got {type(max_retries).__name__}: {max_retries!r})"
            )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False

    async def aclose(self) -> None:
        await self._client.aclose()

    async def post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        """
        POST a JSON payload and return the decoded JSON object.

        Raises:
            CipherionError: On network failure, non-2xx status, or a body that
                is not a JSON object
        """
        if not path or not isinstance(path, str):
            raise CipherionError("Invalid URL provided", 400)
        if not payload:
            raise CipherionError("Request data is required", 400)

        logger.debug(f"Outgoing request: POST {path}")

        response = await retry_async(
            lambda: self._post_once(path, payload),
            strategy=self.retry_strategy,
            max_attempts=self.max_retries + 1,
            should_retry=lambda e: isinstance(e, CipherionError) and e.is_retryable(),
            on_retry=self._log_retry,
            sleep=self._sleep,
        )

        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            raise CipherionError("Invalid API response format", 500)
        return body

    async def _post_once(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        try:
            response = await self._client.post(path, json=payload)
        except httpx.HTTPError as e:
            logger.warning(f"⚠️  POST {path} failed: {type(e).__name__}: {str(e)[:200]}")
            raise CipherionError.from_http_error(e) from e

        if not response.is_success:
            raise self._error_from_response(response)
        return response

    @staticmethod
    def _error_from_response(response: httpx.Response) -> CipherionError:
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict):
            message = body.get("message") or "Unexpected response status"
            error_block = body.get("error")
            details = error_block.get("details") if isinstance(error_block, dict) else None
            return CipherionError(message, response.status_code, details or json.dumps(body))
        return CipherionError(
            "Unexpected response status", response.status_code, response.text[:500] or None
        )

    def _log_retry(self, attempt: int, error: BaseException, delay: float) -> None:
        logger.warning(
            f"⚠️  Retrying request (attempt {attempt}/{self.max_retries}) in {delay:.1f}s: "
            f"{str(error)[:150]}"
        )
