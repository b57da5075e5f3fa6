"""Basic tests for batch migrations."""

import pytest

from cipherion import (
    BatchMigrator,
    MetricsObserver,
    MigrationHelper,
    MigrationOptions,
    MigrationResult,
)
from cipherion.testing import MockCryptoService, RecordingSleep


@pytest.mark.asyncio
async def test_encrypt_migration_all_succeed():
    """Test that every item is encrypted and counted."""

    service = MockCryptoService()
    helper = MigrationHelper(service, sleep=RecordingSleep())

    items = [{"id": i, "email": f"user{i}@example.com"} for i in range(5)]
    result = await helper.run_encrypt_migration(items, MigrationOptions(batch_size=2))

    assert isinstance(result, MigrationResult)
    assert result.summary.total == 5
    assert result.summary.processed == 5
    assert result.summary.successful == 5
    assert result.summary.failed == 0
    assert result.summary.percentage == 100
    assert len(result.successful) == 5
    assert result.failed == []
    assert not result.cancelled
    assert service.call_count == 5
    assert all(call[0] == "deep_encrypt" for call in service.calls)


@pytest.mark.asyncio
async def test_decrypt_migration_uses_decrypt_operation():
    """Test that the decrypt direction calls deep_decrypt."""

    service = MockCryptoService(decrypt_factory=lambda item: item.upper())
    helper = MigrationHelper(service, sleep=RecordingSleep())

    result = await helper.run_decrypt_migration(["a", "b", "c"])

    assert sorted(result.successful) == ["A", "B", "C"]
    assert result.summary.successful == 3
    assert [call[0] for call in service.calls] == ["deep_decrypt"] * 3


@pytest.mark.asyncio
async def test_twenty_five_items_form_three_batches():
    """Test 25 items with batch_size=10 run as 10, 10, 5 with two pauses."""

    observer = MetricsObserver()
    sleep = RecordingSleep()
    service = MockCryptoService()
    migrator = BatchMigrator(
        service.deep_encrypt, name="encrypt", observers=[observer], sleep=sleep
    )

    result = await migrator.run(
        list(range(25)),
        MigrationOptions(batch_size=10, delay_between_batches=1.5),
    )

    metrics = await observer.get_metrics()
    assert metrics["batches_completed"] == 3
    # Delay between batches only, never after the last one
    assert sleep.calls == [1.5, 1.5]
    assert result.summary.processed == 25


@pytest.mark.asyncio
async def test_batch_sizes_seen_by_observer():
    """Test that batches are consecutive slices of at most batch_size items."""

    from cipherion import BaseObserver, MigrationEvent

    sizes = []

    class BatchSizeObserver(BaseObserver):
        async def on_event(self, event, data):
            if event == MigrationEvent.BATCH_STARTED:
                sizes.append(data["size"])

    service = MockCryptoService()
    migrator = BatchMigrator(
        service.deep_encrypt, observers=[BatchSizeObserver()], sleep=RecordingSleep()
    )

    await migrator.run(list(range(25)), MigrationOptions(batch_size=10))

    assert sizes == [10, 10, 5]


@pytest.mark.asyncio
async def test_exclusion_options_passed_through_untouched():
    """Test that exclusion options reach the operation as given."""

    service = MockCryptoService()
    helper = MigrationHelper(service, sleep=RecordingSleep())
    exclusion = {"exclude_fields": ["profile.id"], "exclude_patterns": ["*_at"]}

    await helper.run_encrypt_migration(
        [{"a": 1}, {"b": 2}], MigrationOptions(exclusion_options=exclusion)
    )

    assert all(call[2] is exclusion for call in service.calls)


@pytest.mark.asyncio
async def test_summary_invariants_with_failures():
    """Test processed == successful + failed == total at completion."""

    service = MockCryptoService(fail_when=lambda item: item % 3 == 0)
    helper = MigrationHelper(service, sleep=RecordingSleep())

    result = await helper.run_encrypt_migration(
        list(range(10)), MigrationOptions(batch_size=4, max_retries=1)
    )

    summary = result.summary
    assert summary.processed == summary.successful + summary.failed == summary.total == 10
    assert summary.failed == 4  # 0, 3, 6, 9
    assert summary.percentage == 100
    assert sorted(f.item for f in result.failed) == [0, 3, 6, 9]
