"""Async Python client for the Cipherion encryption API.

This module provides deep (structure-preserving) encryption and decryption
calls plus a batch migration engine for encrypting or decrypting large
collections of records without overwhelming the remote service.

Key features:
- Async client built on httpx with transport-level retries
- Batch migrations with bounded concurrency and inter-batch delays
- Per-item retry with linear backoff and jitter
- Progress and error callbacks isolated from the pipeline
- Observer pattern for monitoring
- Configuration from arguments, environment, or a .env file

Example:
    >>> from cipherion import CipherionClient, MigrationOptions
    >>>
    >>> async with CipherionClient() as client:
    ...     result = await client.migrate_encrypt(
    ...         records,
    ...         MigrationOptions(batch_size=20, on_progress=print),
    ...     )
    ...     print(result.summary.successful, result.summary.failed)
"""

# Core classes
from .base import (
    CryptoOperation,
    ErrorCallbackFunc,
    FailedItem,
    MigrationProgress,
    MigrationResult,
    ProgressCallbackFunc,
)

# Client
from .client import CipherionClient

# Configuration
from .core import ClientConfig, CryptoService, MigrationOptions

# Errors
from .errors import CipherionError, ConfigurationError

# Transport
from .http import HttpClient

# Migration engine
from .migration import BatchMigrator, MigrationHelper, ResultAggregator

# API models
from .models import ExclusionOptions

# Observers
from .observers import BaseObserver, MetricsObserver, MigrationEvent, MigrationObserver

# Retry strategies
from .strategies import (
    ExponentialBackoffStrategy,
    LinearBackoffStrategy,
    RetryStrategy,
    retry_async,
)

__all__ = [
    # Core
    "CryptoOperation",
    "ErrorCallbackFunc",
    "FailedItem",
    "MigrationProgress",
    "MigrationResult",
    "ProgressCallbackFunc",
    # Client
    "CipherionClient",
    "HttpClient",
    # Configuration
    "ClientConfig",
    "CryptoService",
    "MigrationOptions",
    "ExclusionOptions",
    # Errors
    "CipherionError",
    "ConfigurationError",
    # Migration
    "BatchMigrator",
    "MigrationHelper",
    "ResultAggregator",
    # Observers
    "MigrationObserver",
    "BaseObserver",
    "MetricsObserver",
    "MigrationEvent",
    # Retry
    "RetryStrategy",
    "LinearBackoffStrategy",
    "ExponentialBackoffStrategy",
    "retry_async",
]

__version__ = "0.1.0"
