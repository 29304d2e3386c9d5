import pytest

from tickwatch.fetch.gate import BackoffConfig, BackoffGate, TokenBucketConfig, TokenBucketGate
from tests.helpers.fakes import FakeClock


def _bucket(capacity=3, poll=1.0):
    clk = FakeClock()
    gate = TokenBucketGate(TokenBucketConfig(capacity=capacity, poll_interval_s=poll),
                           clock=clk.monotonic, sleep=clk.sleep)
    return gate, clk


@pytest.mark.asyncio
async def test_token_bucket_allows_capacity_without_waiting():
    gate, clk = _bucket(capacity=3)
    for _ in range(3):
        assert await gate.acquire() == 0.0
    assert clk.sleeps == []


@pytest.mark.asyncio
async def test_token_bucket_waits_for_refill_past_capacity():
    gate, clk = _bucket(capacity=3)
    for _ in range(3):
        await gate.acquire()
    waited = await gate.acquire()
    # 3 per minute -> one token every 20s
    assert 20.0 - 1e-6 <= waited <= 21.0 + 1e-6
    assert sum(clk.sleeps) == pytest.approx(waited)


@pytest.mark.asyncio
async def test_token_bucket_does_not_overfill():
    gate, clk = _bucket(capacity=2)
    clk.advance(3600)
    assert await gate.acquire() == 0.0
    assert await gate.acquire() == 0.0
    assert await gate.acquire() > 0.0


def test_token_bucket_rejects_zero_capacity():
    with pytest.raises(ValueError):
        TokenBucketGate(TokenBucketConfig(capacity=0))


@pytest.mark.parametrize("kw", [
    {"min_delay_s": -1.0},
    {"initial_backoff_s": 0.0},
    {"backoff_factor": 0.5},
    {"initial_backoff_s": 40.0, "max_backoff_s": 30.0},
    {"reset_after_successes": 0},
])
def test_backoff_config_rejects_bad_values(kw):
    with pytest.raises(ValueError):
        BackoffConfig(**kw)


def _backoff(**kw):
    clk = FakeClock()
    gate = BackoffGate(BackoffConfig(**kw), clock=clk.monotonic, sleep=clk.sleep)
    return gate, clk


@pytest.mark.asyncio
async def test_backoff_enforces_min_delay():
    gate, clk = _backoff(min_delay_s=1.0)
    assert await gate.acquire() == 0.0
    assert await gate.acquire() == pytest.approx(1.0)
    clk.advance(0.4)
    assert await gate.acquire() == pytest.approx(0.6)
    clk.advance(5.0)
    assert await gate.acquire() == 0.0


@pytest.mark.asyncio
async def test_backoff_waits_then_grows_to_cap():
    gate, clk = _backoff()
    await gate.acquire()
    waits = []
    for _ in range(7):
        gate.report_throttled()
        waits.append(await gate.acquire())
    assert waits == pytest.approx([5.0, 7.5, 11.25, 16.875, 25.3125, 30.0, 30.0])


@pytest.mark.asyncio
async def test_backoff_only_applies_once_per_report():
    gate, clk = _backoff()
    gate.report_throttled()
    assert await gate.acquire() == pytest.approx(5.0)
    clk.advance(10.0)
    assert await gate.acquire() == 0.0
    assert gate.backoff_delay == pytest.approx(7.5)


@pytest.mark.asyncio
async def test_backoff_does_not_decay_without_reset():
    gate, clk = _backoff()
    gate.report_throttled()
    await gate.acquire()
    for _ in range(50):
        gate.report_success()
    assert gate.backoff_delay == pytest.approx(7.5)
    gate.reset()
    assert gate.backoff_delay == 5.0
    assert not gate.throttled


@pytest.mark.asyncio
async def test_backoff_resets_after_configured_successes():
    gate, clk = _backoff(reset_after_successes=2)
    gate.report_throttled()
    await gate.acquire()
    gate.report_success()
    assert gate.backoff_delay == pytest.approx(7.5)
    gate.report_success()
    assert gate.backoff_delay == 5.0
