"""Batch migration engine.

Drives many independent encrypt/decrypt calls against the remote service:
items are split into fixed-size batches, every item of a batch runs
concurrently, the batch is awaited as a whole, and the migrator pauses before
starting the next batch.

Concurrency model: everything runs on a single asyncio event loop. Counter and
result updates in ResultAggregator contain no await, so two item completions
can never interleave inside an update and no lock is needed. Running the
aggregator from several threads would require adding one.
"""

import asyncio
import inspect
import logging
import time
import traceback
from collections.abc import Mapping, Sequence
from typing import Any

from .base import (
    CryptoOperation,
    FailedItem,
    MigrationProgress,
    MigrationResult,
)
from .core import CryptoService, MigrationOptions
from .errors import ConfigurationError
from .observers import MigrationEvent, MigrationObserver
from .strategies import LinearBackoffStrategy, RetryStrategy, retry_async
from .strategies.retry import SleepFunc

logger = logging.getLogger(__name__)


def _percentage(processed: int, total: int) -> int:
    """Percentage rounded half up, e.g. 1 of 8 -> 13."""
    return (processed * 200 + total) // (2 * total)


class ResultAggregator:
    """
    Accumulates per-item outcomes for one migration run.

    Owns the live counters and the successful/failed sequences; callers only
    ever see immutable MigrationProgress snapshots.
    """

    def __init__(self, total: int):
        self.total = total
        self.processed = 0
        self.successful_count = 0
        self.failed_count = 0
        self.successful: list[Any] = []
        self.failed: list[FailedItem] = []

    def record_success(self, value: Any) -> MigrationProgress:
        """Record a successful outcome and return the updated snapshot."""
        self.successful.append(value)
        self.successful_count += 1
        self.processed += 1
        return self.snapshot()

    def record_failure(self, item: Any, error: BaseException) -> MigrationProgress:
        """Record an item that exhausted its retries and return the updated snapshot."""
        self.failed.append(FailedItem(item=item, error=error))
        self.failed_count += 1
        self.processed += 1
        return self.snapshot()

    @property
    def percentage(self) -> int:
        if self.total == 0:
            return 100
        return _percentage(self.processed, self.total)

    def snapshot(self) -> MigrationProgress:
        return MigrationProgress(
            total=self.total,
            processed=self.processed,
            successful=self.successful_count,
            failed=self.failed_count,
            percentage=self.percentage,
        )

    def result(self, cancelled: bool = False) -> MigrationResult:
        return MigrationResult(
            successful=list(self.successful),
            failed=list(self.failed),
            summary=self.snapshot(),
            cancelled=cancelled,
        )


class BatchMigrator:
    """
    Runs one remote operation over a sequence of items in rate-limited batches.

    The same class serves both directions; it is parameterized by the async
    operation to call for each item.
    """

    def __init__(
        self,
        operation: CryptoOperation,
        name: str = "migration",
        observers: list[MigrationObserver] | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        """
        Initialize the migrator.

        Args:
            operation: Coroutine function called as operation(item, exclusion_options)
            name: Label used in logs and events (e.g. "encrypt")
            observers: Observers notified of migration events
            sleep: Coroutine used for inter-batch and retry delays
        """
        self.operation = operation
        self.name = name
        self.observers = observers or []
        self._sleep = sleep

    async def run(
        self,
        items: Sequence[Any],
        options: MigrationOptions | Mapping[str, Any] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> MigrationResult:
        """
        Process every item and return the aggregated result.

        Per-item failures are collected in the result, never raised.

        Args:
            items: Ordered items to process
            options: Migration options (a MigrationOptions or a mapping of its fields)
            cancel_event: When set, no further batch is started; the batch in
                flight always settles first

        Returns:
            MigrationResult with successful outputs, failures and summary

        Raises:
            ConfigurationError: If items is not a sequence or options are invalid
        """
        if isinstance(items, (str, bytes, bytearray)) or not isinstance(items, Sequence):
            raise ConfigurationError(
                f"items must be a list or other sequence (got {type(items).__name__}). "
                f"Pass the records to migrate as a list."
            )
        opts = self._resolve_options(options)

        total = len(items)
        aggregator = ResultAggregator(total)

        if total == 0:
            logger.warning(f"⚠️  Empty item list provided for {self.name} migration")
            return aggregator.result()

        batches = [
            items[start : start + opts.batch_size]
            for start in range(0, total, opts.batch_size)
        ]
        strategy = LinearBackoffStrategy(opts.retry_base_delay, opts.retry_max_jitter)

        logger.info(
            f"ℹ️  Starting {self.name} migration: {total} items in {len(batches)} "
            f"batch(es) of up to {opts.batch_size}"
        )
        await self._emit_event(
            MigrationEvent.MIGRATION_STARTED,
            {"operation": self.name, "total": total, "batches": len(batches)},
        )

        cancelled = False
        offset = 0
        for batch_number, batch in enumerate(batches, start=1):
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
                logger.warning(
                    f"⚠️  {self.name} migration cancelled before batch "
                    f"{batch_number}/{len(batches)}"
                )
                break

            await self._run_batch(
                batch, offset, batch_number, len(batches), opts, strategy, aggregator
            )
            offset += len(batch)

            # No delay after the last batch
            if batch_number < len(batches) and opts.delay_between_batches > 0:
                await self._sleep(opts.delay_between_batches)

        summary = aggregator.snapshot()
        if cancelled:
            await self._emit_event(MigrationEvent.MIGRATION_CANCELLED, summary.to_dict())
        else:
            await self._emit_event(MigrationEvent.MIGRATION_COMPLETED, summary.to_dict())

        status = "✓" if summary.failed == 0 else "⚠️ "
        logger.info(
            f"{status} {self.name} migration finished: {summary.processed}/{summary.total} "
            f"processed | Succeeded: {summary.successful}, Failed: {summary.failed}"
        )
        return aggregator.result(cancelled=cancelled)

    def _resolve_options(
        self, options: MigrationOptions | Mapping[str, Any] | None
    ) -> MigrationOptions:
        if options is None:
            options = MigrationOptions()
        elif isinstance(options, Mapping):
            try:
                options = MigrationOptions(**options)
            except TypeError as e:
                raise ConfigurationError(f"Unknown migration option: {e}") from e
        elif not isinstance(options, MigrationOptions):
            raise ConfigurationError(
                f"options must be MigrationOptions, a mapping, or None "
                f"(got {type(options).__name__})."
            )
        return options.normalized()

    async def _run_batch(
        self,
        batch: Sequence[Any],
        offset: int,
        batch_number: int,
        batch_count: int,
        options: MigrationOptions,
        strategy: RetryStrategy,
        aggregator: ResultAggregator,
    ) -> None:
        """Dispatch every item of the batch concurrently and wait for all of them."""
        start_time = time.time()
        await self._emit_event(
            MigrationEvent.BATCH_STARTED,
            {"batch": batch_number, "batches": batch_count, "size": len(batch)},
        )

        await asyncio.gather(
            *(
                self._settle_item(item, offset + position, options, strategy, aggregator)
                for position, item in enumerate(batch)
            )
        )

        duration = time.time() - start_time
        progress = aggregator.snapshot()
        logger.info(
            f"ℹ️  Batch {batch_number}/{batch_count} done in {duration:.2f}s | "
            f"Progress: {progress.processed}/{progress.total} ({progress.percentage}%) | "
            f"Succeeded: {progress.successful}, Failed: {progress.failed}"
        )
        await self._emit_event(
            MigrationEvent.BATCH_COMPLETED,
            {"batch": batch_number, "duration": duration, **progress.to_dict()},
        )

    async def _settle_item(
        self,
        item: Any,
        index: int,
        options: MigrationOptions,
        strategy: RetryStrategy,
        aggregator: ResultAggregator,
    ) -> None:
        """Run one item to completion, record its outcome, then notify callbacks."""
        try:
            value = await self.process_with_retry(
                item,
                options.max_retries,
                options.exclusion_options,
                strategy=strategy,
                index=index,
            )
        except Exception as e:
            aggregator.record_failure(item, e)
            logger.error(
                f"✗ Item {index} failed after {options.max_retries} attempt(s): "
                f"{type(e).__name__}: {str(e)[:200]}"
            )
            await self._emit_event(
                MigrationEvent.ITEM_FAILED,
                {"index": index, "error_type": type(e).__name__, "error": str(e)[:200]},
            )
            await self._invoke_callback("on_error", options.on_error, e, item)
        else:
            aggregator.record_success(value)
            await self._emit_event(MigrationEvent.ITEM_SUCCEEDED, {"index": index})

        # Snapshot at call time: other items may have settled during the awaits above
        await self._invoke_callback("on_progress", options.on_progress, aggregator.snapshot())

    async def process_with_retry(
        self,
        item: Any,
        max_retries: int,
        exclusion_options: Any = None,
        *,
        strategy: RetryStrategy | None = None,
        index: int | None = None,
    ) -> Any:
        """
        Call the operation for one item, retrying every failure.

        Waits strategy.get_delay(attempt) between attempts (by default
        1s * attempt + up to 0.5s jitter). max_retries counts total attempts;
        values below 1 still make one attempt.

        Raises:
            The last error once all attempts have failed
        """
        label = f"item {index}" if index is not None else "item"
        max_attempts = max(1, max_retries)

        async def on_retry(attempt: int, error: BaseException, delay: float) -> None:
            logger.warning(
                f"⚠️  Attempt {attempt}/{max_attempts} failed for {label}: "
                f"{type(error).__name__} - {str(error)[:150]}. Retrying in {delay:.1f}s..."
            )
            await self._emit_event(
                MigrationEvent.ITEM_RETRY,
                {
                    "index": index,
                    "attempt": attempt,
                    "delay": delay,
                    "error_type": type(error).__name__,
                },
            )

        return await retry_async(
            lambda: self.operation(item, exclusion_options),
            strategy=strategy or LinearBackoffStrategy(),
            max_attempts=max_attempts,
            on_retry=on_retry,
            sleep=self._sleep,
        )

    async def _invoke_callback(self, name: str, callback: Any, *args: Any) -> None:
        """Call a user hook; its failures are logged and never reach the pipeline."""
        if callback is None:
            return
        try:
            outcome = callback(*args)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.error(
                f"✗ Error in {name} callback during {self.name} migration:\n"
                f"  Error type: {type(e).__name__}\n"
                f"  Error message: {str(e)}\n"
                f"  Full traceback:\n{traceback.format_exc()}"
            )

    async def _emit_event(self, event: MigrationEvent, data: dict | None = None) -> None:
        """Emit event to all observers."""
        if not self.observers:
            return

        event_data = {"operation": self.name, **(data or {})}
        for observer in self.observers:
            try:
                await asyncio.wait_for(observer.on_event(event, event_data), timeout=5.0)
            except asyncio.TimeoutError:
                logger.warning(f"⚠️  Observer callback timed out after 5s for event {event.name}")
            except Exception as e:
                logger.warning(f"⚠️  Observer error: {e}")


class MigrationHelper:
    """Encrypt and decrypt migrations over a crypto service."""

    def __init__(
        self,
        service: CryptoService,
        observers: list[MigrationObserver] | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        """
        Args:
            service: Anything providing deep_encrypt and deep_decrypt coroutines
            observers: Observers notified of migration events
            sleep: Coroutine used for inter-batch and retry delays
        """
        self.service = service
        self.encryptor = BatchMigrator(
            service.deep_encrypt, name="encrypt", observers=observers, sleep=sleep
        )
        self.decryptor = BatchMigrator(
            service.deep_decrypt, name="decrypt", observers=observers, sleep=sleep
        )

    async def run_encrypt_migration(
        self,
        items: Sequence[Any],
        options: MigrationOptions | Mapping[str, Any] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> MigrationResult:
        """Encrypt every item in batches."""
        return await self.encryptor.run(items, options, cancel_event)

    async def run_decrypt_migration(
        self,
        items: Sequence[Any],
        options: MigrationOptions | Mapping[str, Any] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> MigrationResult:
        """Decrypt every item in batches."""
        return await self.decryptor.run(items, options, cancel_event)
