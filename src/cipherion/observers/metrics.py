"""Metrics collection observer."""

import asyncio
import json
from collections import Counter
from typing import Any

from .base import BaseObserver, MigrationEvent

# (metric, help text) pairs exported as Prometheus counters
_COUNTERS = (
    ("migrations_started", "Migrations started"),
    ("migrations_completed", "Migrations that ran to the end"),
    ("migrations_cancelled", "Migrations stopped by a cancel event"),
    ("batches_completed", "Batches settled"),
    ("items_processed", "Items settled, successfully or not"),
    ("items_succeeded", "Items encrypted or decrypted successfully"),
    ("items_failed", "Items that exhausted their retries"),
    ("retries", "Item attempts that were retried"),
)

_GAUGES = (
    ("avg_batch_duration", "Average batch duration in seconds"),
    ("success_rate", "Share of settled items that succeeded (0.0 to 1.0)"),
)

# Event -> counters it increments
_EVENT_COUNTERS = {
    MigrationEvent.MIGRATION_STARTED: ("migrations_started",),
    MigrationEvent.MIGRATION_COMPLETED: ("migrations_completed",),
    MigrationEvent.MIGRATION_CANCELLED: ("migrations_cancelled",),
    MigrationEvent.BATCH_COMPLETED: ("batches_completed",),
    MigrationEvent.ITEM_RETRY: ("retries",),
    MigrationEvent.ITEM_SUCCEEDED: ("items_processed", "items_succeeded"),
    MigrationEvent.ITEM_FAILED: ("items_processed", "items_failed"),
}


class MetricsObserver(BaseObserver):
    """
    Tally migration events for monitoring.

    Totals are kept overall and per operation ("encrypt" / "decrypt"), so
    one observer can be shared by both directions of a MigrationHelper.
    """

    def __init__(self):
        self._lock = asyncio.Lock()
        self._clear()

    def _clear(self) -> None:
        self.totals: Counter[str] = Counter()
        self.by_operation: dict[str, Counter[str]] = {}
        self.batch_durations: list[float] = []
        self.error_counts: Counter[str] = Counter()

    async def on_event(self, event: MigrationEvent, data: dict[str, Any]) -> None:
        names = _EVENT_COUNTERS.get(event)
        if names is None:
            return

        async with self._lock:
            operation = self.by_operation.setdefault(
                data.get("operation", "unknown"), Counter()
            )
            for name in names:
                self.totals[name] += 1
                operation[name] += 1

            if event == MigrationEvent.BATCH_COMPLETED and "duration" in data:
                self.batch_durations.append(data["duration"])
            elif event == MigrationEvent.ITEM_FAILED and "error_type" in data:
                self.error_counts[data["error_type"]] += 1

    async def get_metrics(self) -> dict[str, Any]:
        """Return a copy of all counters plus derived statistics."""
        async with self._lock:
            metrics: dict[str, Any] = {name: self.totals[name] for name, _ in _COUNTERS}
            durations = list(self.batch_durations)
            processed = self.totals["items_processed"]
            metrics.update(
                batch_durations=durations,
                error_counts=dict(self.error_counts),
                by_operation={op: dict(c) for op, c in self.by_operation.items()},
                avg_batch_duration=sum(durations) / len(durations) if durations else 0,
                success_rate=self.totals["items_succeeded"] / processed if processed else 0,
            )
            return metrics

    def reset(self) -> None:
        """Reset all metrics."""
        self._clear()

    async def export_json(self) -> str:
        """Export metrics as JSON, with batch durations reduced to a count."""
        metrics = await self.get_metrics()
        metrics["batch_durations_count"] = len(metrics.pop("batch_durations"))
        return json.dumps(metrics, indent=2)

    async def export_prometheus(self) -> str:
        """Export metrics in Prometheus text format.

        Counters carry an unlabelled total plus one line per operation:

            # TYPE cipherion_items_processed counter
            cipherion_items_processed 100
            cipherion_items_processed{operation="encrypt"} 100
        """
        metrics = await self.get_metrics()
        lines: list[str] = []

        for name, help_text in _COUNTERS:
            lines += [f"# HELP cipherion_{name} {help_text}", f"# TYPE cipherion_{name} counter"]
            lines.append(f"cipherion_{name} {metrics[name]}")
            for operation, counts in sorted(metrics["by_operation"].items()):
                if name in counts:
                    lines.append(
                        f'cipherion_{name}{{operation="{_escape(operation)}"}} {counts[name]}'
                    )
            lines.append("")

        for name, help_text in _GAUGES:
            lines += [f"# HELP cipherion_{name} {help_text}", f"# TYPE cipherion_{name} gauge"]
            lines += [f"cipherion_{name} {metrics[name]}", ""]

        if metrics["error_counts"]:
            lines.append("# HELP cipherion_errors_total Item failures by error type")
            lines.append("# TYPE cipherion_errors_total counter")
            for error_type, count in sorted(metrics["error_counts"].items()):
                lines.append(f'cipherion_errors_total{{error_type="{_escape(error_type)}"}} {count}')
            lines.append("")

        return "\n".join(lines)


def _escape(label: str) -> str:
    return label.replace("\\", "\\\\").replace('"', '\\"')
