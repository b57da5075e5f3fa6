"""Observer hooks for migration events."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any


class MigrationEvent(Enum):
    """
    Events emitted by BatchMigrator.

    Every payload carries "operation" (the migrator name). Extra keys:

    - MIGRATION_STARTED: total, batches
    - MIGRATION_COMPLETED / MIGRATION_CANCELLED: the MigrationProgress fields
    - BATCH_STARTED: batch, batches, size
    - BATCH_COMPLETED: batch, duration, plus the MigrationProgress fields
    - ITEM_RETRY: index, attempt, delay, error_type
    - ITEM_SUCCEEDED: index
    - ITEM_FAILED: index, error_type, error
    """

    MIGRATION_STARTED = "migration_started"
    MIGRATION_COMPLETED = "migration_completed"
    MIGRATION_CANCELLED = "migration_cancelled"
    BATCH_STARTED = "batch_started"
    BATCH_COMPLETED = "batch_completed"
    ITEM_RETRY = "item_retry"
    ITEM_SUCCEEDED = "item_succeeded"
    ITEM_FAILED = "item_failed"


class MigrationObserver(ABC):
    """Receives migration events; failures and slow handlers are logged and skipped."""

    @abstractmethod
    async def on_event(self, event: MigrationEvent, data: dict[str, Any]) -> None:
        """Handle one migration event."""


class BaseObserver(MigrationObserver):
    """Observer that ignores every event; subclass and override on_event."""

    async def on_event(self, event: MigrationEvent, data: dict[str, Any]) -> None:
        return None
