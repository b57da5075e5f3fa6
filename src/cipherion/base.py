"""Result types and callback signatures for batch migrations."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .models import ExclusionOptions


@dataclass(frozen=True)
class MigrationProgress:
    """
    Point-in-time view of a running migration.

    Instances are immutable snapshots; the aggregator owns the live counters.

    Attributes:
        total: Number of items submitted (fixed at start)
        processed: Items that have settled so far
        successful: Items that succeeded
        failed: Items that failed after exhausting retries
        percentage: processed / total * 100 rounded half up, or 100 for an empty migration
    """

    total: int = 0
    processed: int = 0
    successful: int = 0
    failed: int = 0
    percentage: int = 0

    def to_dict(self) -> dict[str, int]:
        """Return a plain dictionary copy of the snapshot."""
        return {
            "total": self.total,
            "processed": self.processed,
            "successful": self.successful,
            "failed": self.failed,
            "percentage": self.percentage,
        }


@dataclass
class FailedItem:
    """
    An item that could not be processed.

    Attributes:
        item: The original input item
        error: The last exception raised for it
    """

    item: Any
    error: BaseException


@dataclass
class MigrationResult:
    """
    Terminal value of a migration run.

    Attributes:
        successful: Outputs of successful items, in completion order
        failed: Failure records, in completion order
        summary: Final progress snapshot
        cancelled: True when a cancel event stopped the run between batches
    """

    successful: list[Any] = field(default_factory=list)
    failed: list[FailedItem] = field(default_factory=list)
    summary: MigrationProgress = field(default_factory=MigrationProgress)
    cancelled: bool = False

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)


# Remote per-item operation: (item, exclusion_options) -> awaitable result
CryptoOperation = Callable[[Any, "ExclusionOptions | None"], Awaitable[Any]]

# Type alias for progress callback function (snapshot after each settled item)
ProgressCallbackFunc = Callable[[MigrationProgress], Awaitable[None] | None]

# Type alias for error callback function (error, original_item)
ErrorCallbackFunc = Callable[[BaseException, Any], Awaitable[None] | None]
