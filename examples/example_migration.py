"""Example of a batch encryption migration against a mock crypto service."""

import asyncio
import logging

from cipherion import MetricsObserver, MigrationHelper, MigrationOptions
from cipherion.testing import MockCryptoService


def print_progress(progress):
    print(
        f"  {progress.processed}/{progress.total} "
        f"({progress.percentage}%) ok={progress.successful} failed={progress.failed}"
    )


def print_error(error, item):
    print(f"  ✗ record {item['id']} failed: {error}")


async def main():
    logging.basicConfig(level=logging.INFO)

    # Every 7th record fails permanently, the rest succeed after a short delay
    service = MockCryptoService(
        latency=0.02,
        fail_when=lambda item: item["id"] % 7 == 0,
        transient_failures=1,
    )
    metrics = MetricsObserver()
    helper = MigrationHelper(service, observers=[metrics])

    records = [
        {"id": i, "email": f"user{i}@example.com", "created_at": "2024-01-01"}
        for i in range(1, 31)
    ]

    result = await helper.run_encrypt_migration(
        records,
        MigrationOptions(
            batch_size=8,
            delay_between_batches=0.2,
            max_retries=3,
            retry_base_delay=0.1,
            retry_max_jitter=0.05,
            on_progress=print_progress,
            on_error=print_error,
            exclusion_options={"exclude_fields": ["id"], "exclude_patterns": ["*_at"]},
        ),
    )

    print(f"\n{'='*60}")
    print(f"Total: {result.summary.total}")
    print(f"Succeeded: {result.summary.successful}")
    print(f"Failed: {result.summary.failed}")
    print(f"Service calls: {service.call_count}")
    print(f"{'='*60}\n")

    print(await metrics.export_prometheus())


if __name__ == "__main__":
    asyncio.run(main())
