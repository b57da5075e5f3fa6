"""Tests for per-item retry logic and retry strategies."""

import asyncio

import pytest

from cipherion import (
    BatchMigrator,
    ExponentialBackoffStrategy,
    LinearBackoffStrategy,
    MigrationHelper,
    MigrationOptions,
    retry_async,
)
from cipherion.testing import MockCryptoError, MockCryptoService, RecordingSleep


@pytest.mark.asyncio
async def test_always_failing_item_attempted_max_retries_times():
    """Test that an always-failing item is tried exactly max_retries times."""

    service = MockCryptoService(fail_when=lambda item: True)
    helper = MigrationHelper(service, sleep=RecordingSleep())

    result = await helper.run_encrypt_migration(["doomed"], MigrationOptions(max_retries=3))

    assert service.attempts_for("doomed") == 3
    assert len(result.failed) == 1
    assert result.failed[0].item == "doomed"
    assert isinstance(result.failed[0].error, MockCryptoError)


@pytest.mark.asyncio
async def test_transient_failures_recover():
    """Test that an item failing twice then succeeding ends up successful."""

    service = MockCryptoService(transient_failures=2)
    helper = MigrationHelper(service, sleep=RecordingSleep())

    result = await helper.run_encrypt_migration(["flaky"], MigrationOptions(max_retries=3))

    assert result.summary.successful == 1
    assert result.summary.failed == 0
    assert service.attempts_for("flaky") == 3


@pytest.mark.asyncio
async def test_retries_exhausted_before_recovery():
    """Test that recovery after the last allowed attempt is never reached."""

    service = MockCryptoService(transient_failures=3)
    helper = MigrationHelper(service, sleep=RecordingSleep())

    result = await helper.run_encrypt_migration(["flaky"], MigrationOptions(max_retries=3))

    assert result.summary.failed == 1
    assert service.attempts_for("flaky") == 3


@pytest.mark.asyncio
async def test_linear_backoff_delays():
    """Test waits of base * attempt between attempts (jitter disabled)."""

    sleep = RecordingSleep()
    service = MockCryptoService(fail_when=lambda item: True)
    helper = MigrationHelper(service, sleep=sleep)

    await helper.run_encrypt_migration(
        ["x"],
        MigrationOptions(max_retries=4, retry_base_delay=1.0, retry_max_jitter=0.0),
    )

    # No wait after the final attempt
    assert sleep.calls == [1.0, 2.0, 3.0]


@pytest.mark.asyncio
async def test_max_retries_zero_still_makes_one_attempt():
    """Test that max_retries <= 0 never means zero attempts."""

    service = MockCryptoService(fail_when=lambda item: True)
    migrator = BatchMigrator(service.deep_encrypt, sleep=RecordingSleep())

    for value in (0, -3):
        with pytest.raises(MockCryptoError):
            await migrator.process_with_retry(f"item-{value}", value)
        assert service.attempts_for(f"item-{value}") == 1


@pytest.mark.asyncio
async def test_max_retries_clamped_to_ten():
    """Test that max_retries above 10 is clamped."""

    service = MockCryptoService(fail_when=lambda item: True)
    helper = MigrationHelper(service, sleep=RecordingSleep())

    await helper.run_encrypt_migration(["x"], MigrationOptions(max_retries=50))

    assert service.attempts_for("x") == 10


@pytest.mark.asyncio
async def test_process_with_retry_returns_value():
    """Test the item processor directly."""

    service = MockCryptoService(transient_failures=1, encrypt_factory=lambda item: f"E({item})")
    migrator = BatchMigrator(service.deep_encrypt, sleep=RecordingSleep())

    value = await migrator.process_with_retry("v", 2, {"exclude_fields": ["id"]})

    assert value == "E(v)"
    assert service.calls[-1][2] == {"exclude_fields": ["id"]}


def test_linear_strategy_jitter_bounds():
    """Test linear backoff stays within base * attempt + [0, jitter]."""

    strategy = LinearBackoffStrategy(base_delay=1.0, max_jitter=0.5)
    for attempt in range(1, 6):
        for _ in range(20):
            delay = strategy.get_delay(attempt)
            assert attempt <= delay <= attempt + 0.5


def test_exponential_strategy_capped():
    """Test exponential backoff growth and ceiling."""

    strategy = ExponentialBackoffStrategy(
        initial_delay=1.0, exponential_base=2.0, max_delay=10.0, max_jitter=0.0
    )

    assert strategy.get_delay(1) == 1.0
    assert strategy.get_delay(2) == 2.0
    assert strategy.get_delay(3) == 4.0
    assert strategy.get_delay(5) == 10.0


@pytest.mark.asyncio
async def test_retry_async_respects_should_retry():
    """Test that a rejected error is raised without further attempts."""

    calls = []

    async def operation():
        calls.append(1)
        raise ValueError("permanent")

    with pytest.raises(ValueError):
        await retry_async(
            operation,
            strategy=LinearBackoffStrategy(0.0, 0.0),
            max_attempts=5,
            should_retry=lambda e: not isinstance(e, ValueError),
            sleep=RecordingSleep(),
        )

    assert len(calls) == 1


@pytest.mark.asyncio
async def test_retry_async_reports_retries():
    """Test that on_retry sees each failed attempt before its wait."""

    seen = []
    attempts = []

    async def operation():
        attempts.append(1)
        if len(attempts) < 3:
            raise ConnectionError("down")
        return "ok"

    result = await retry_async(
        operation,
        strategy=LinearBackoffStrategy(0.5, 0.0),
        max_attempts=3,
        on_retry=lambda attempt, error, delay: seen.append((attempt, delay)),
        sleep=RecordingSleep(),
    )

    assert result == "ok"
    assert seen == [(1, 0.5), (2, 1.0)]


@pytest.mark.asyncio
async def test_retry_async_awaits_non_coroutine_awaitables():
    """Test that an on_retry returning a future is awaited before the next attempt."""

    order = []
    attempts = []

    async def operation():
        attempts.append(1)
        if len(attempts) < 2:
            raise ConnectionError("down")
        return "ok"

    async def record(attempt):
        await asyncio.sleep(0)
        order.append(f"retry {attempt}")

    def on_retry(attempt, error, delay):
        return asyncio.ensure_future(record(attempt))

    async def sleep(delay):
        order.append("sleep")

    await retry_async(
        operation,
        strategy=LinearBackoffStrategy(0.5, 0.0),
        max_attempts=2,
        on_retry=on_retry,
        sleep=sleep,
    )

    assert order == ["retry 1", "sleep"]
