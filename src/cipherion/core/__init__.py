"""Core components for Cipherion migrations."""

from .config import ClientConfig, MigrationOptions
from .protocols import CryptoService

__all__ = [
    "ClientConfig",
    "MigrationOptions",
    "CryptoService",
]
