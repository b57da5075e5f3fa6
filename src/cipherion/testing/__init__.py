"""Testing utilities for cipherion."""

from .mocks import MockCryptoError, MockCryptoService, RecordingSleep

__all__ = ["MockCryptoError", "MockCryptoService", "RecordingSleep"]
