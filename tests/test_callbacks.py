"""Tests for progress and error callbacks."""

import asyncio
import dataclasses
import logging

import pytest

from cipherion import MigrationHelper, MigrationOptions, MigrationProgress
from cipherion.testing import MockCryptoError, MockCryptoService, RecordingSleep


@pytest.mark.asyncio
async def test_progress_called_after_every_item():
    """Test that on_progress fires once per item with increasing counts."""

    snapshots: list[MigrationProgress] = []
    service = MockCryptoService()
    helper = MigrationHelper(service, sleep=RecordingSleep())

    await helper.run_encrypt_migration(
        list(range(8)),
        MigrationOptions(batch_size=3, on_progress=snapshots.append),
    )

    assert len(snapshots) == 8
    assert [s.processed for s in snapshots] == list(range(1, 9))
    for snapshot in snapshots:
        assert snapshot.total == 8
        assert snapshot.processed == snapshot.successful + snapshot.failed
        assert 0 <= snapshot.percentage <= 100
        assert (snapshot.percentage == 100) == (snapshot.processed == snapshot.total)
    # Rounded half up: 1/8 -> 12.5% -> 13
    assert snapshots[0].percentage == 13
    assert snapshots[-1].percentage == 100


@pytest.mark.asyncio
async def test_progress_snapshot_is_read_only():
    """Test that callbacks cannot mutate the migration's progress."""

    captured = []
    service = MockCryptoService()
    helper = MigrationHelper(service, sleep=RecordingSleep())

    def tamper(progress):
        captured.append(progress)
        with pytest.raises(dataclasses.FrozenInstanceError):
            progress.processed = 999  # type: ignore[misc]

    result = await helper.run_encrypt_migration([1, 2], MigrationOptions(on_progress=tamper))

    assert len(captured) == 2
    assert result.summary.processed == 2


@pytest.mark.asyncio
async def test_on_error_called_once_per_odd_index():
    """Test odd-index failures with max_retries=1 are reported individually."""

    errors = []
    items = list(range(11))
    service = MockCryptoService(fail_when=lambda item: item % 2 == 1)
    helper = MigrationHelper(service, sleep=RecordingSleep())

    result = await helper.run_encrypt_migration(
        items,
        MigrationOptions(
            batch_size=4,
            max_retries=1,
            on_error=lambda error, item: errors.append((error, item)),
        ),
    )

    odd = [i for i in items if i % 2 == 1]
    even = [i for i in items if i % 2 == 0]
    assert len(result.successful) == len(even)
    assert len(result.failed) == len(odd)
    assert sorted(item for _, item in errors) == odd
    assert all(isinstance(error, MockCryptoError) for error, _ in errors)
    # Failed attempts are not retried with max_retries=1
    assert all(service.attempts_for(i) == 1 for i in odd)


@pytest.mark.asyncio
async def test_throwing_callbacks_do_not_change_outcome(caplog):
    """Test that callback failures are isolated from item classification."""

    def run_options(on_progress, on_error):
        return MigrationOptions(
            batch_size=3, max_retries=1, on_progress=on_progress, on_error=on_error
        )

    def boom(*args):
        raise RuntimeError("callback exploded")

    def noop(*args):
        return None

    items = list(range(9))
    baseline_service = MockCryptoService(fail_when=lambda item: item in (2, 5))
    baseline_helper = MigrationHelper(baseline_service, sleep=RecordingSleep())
    baseline = await baseline_helper.run_encrypt_migration(items, run_options(noop, noop))

    faulty_service = MockCryptoService(fail_when=lambda item: item in (2, 5))
    with caplog.at_level(logging.ERROR, logger="cipherion.migration"):
        faulty_helper = MigrationHelper(faulty_service, sleep=RecordingSleep())
        faulty = await faulty_helper.run_encrypt_migration(items, run_options(boom, boom))

    assert faulty.summary == baseline.summary
    assert faulty.summary.successful == 7
    assert faulty.summary.failed == 2
    # Each item that succeeded was called exactly once: callback errors never trigger retries
    assert faulty_service.call_count == baseline_service.call_count
    assert "callback exploded" in caplog.text


@pytest.mark.asyncio
async def test_async_callbacks_are_awaited():
    """Test that coroutine callbacks run to completion."""

    progress_seen = []
    errors_seen = []

    async def on_progress(progress):
        progress_seen.append(progress.processed)

    async def on_error(error, item):
        errors_seen.append(item)

    service = MockCryptoService(fail_when=lambda item: item == "bad")
    helper = MigrationHelper(service, sleep=RecordingSleep())

    await helper.run_encrypt_migration(
        ["good", "bad", "fine"],
        MigrationOptions(max_retries=1, on_progress=on_progress, on_error=on_error),
    )

    assert sorted(progress_seen) == [1, 2, 3]
    assert errors_seen == ["bad"]


@pytest.mark.asyncio
async def test_on_error_sees_progress_already_updated():
    """Test that counters include the failed item when on_error runs."""

    observed = []
    service = MockCryptoService(fail_when=lambda item: True)
    helper = MigrationHelper(service, sleep=RecordingSleep())

    progress_log = []

    def on_error(error, item):
        observed.append(len(progress_log))

    await helper.run_encrypt_migration(
        ["only"],
        MigrationOptions(max_retries=1, on_error=on_error, on_progress=progress_log.append),
    )

    # on_error runs before on_progress for the same item
    assert observed == [0]
    assert progress_log[0].failed == 1
    assert progress_log[0].processed == 1


@pytest.mark.asyncio
async def test_progress_never_goes_backwards_with_slow_error_hook():
    """Test that a slow async on_error cannot make on_progress report stale counts."""

    snapshots: list[MigrationProgress] = []
    service = MockCryptoService(fail_when=lambda item: item == "bad")
    helper = MigrationHelper(service, sleep=RecordingSleep())

    async def on_error(error, item):
        # "ok" settles while this hook is suspended
        await asyncio.sleep(0.05)

    await helper.run_encrypt_migration(
        ["bad", "ok"],
        MigrationOptions(max_retries=1, on_error=on_error, on_progress=snapshots.append),
    )

    processed = [snapshot.processed for snapshot in snapshots]
    assert len(processed) == 2
    assert processed == sorted(processed)
    assert snapshots[-1].processed == 2
    assert snapshots[-1].percentage == 100
