"""Type protocols for the remote crypto service."""

from typing import Any, Protocol

from ..models import ExclusionOptions


class CryptoService(Protocol):
    """Protocol that any deep encrypt/decrypt backend must satisfy."""

    async def deep_encrypt(
        self, data: Any, options: ExclusionOptions | None = None
    ) -> Any:
        """Encrypt a structured value, preserving its shape."""
        ...

    async def deep_decrypt(
        self, encrypted: Any, options: ExclusionOptions | None = None
    ) -> Any:
        """Decrypt a value produced by deep_encrypt."""
        ...
