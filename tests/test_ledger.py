import asyncio

import pytest

from async_code_mailer.ledger import AttemptLedger


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.mark.asyncio
async def test_record_and_purge_keep_live_entries():
    clock = FakeClock()
    ledger = AttemptLedger(window_seconds=900, clock=clock)

    await ledger.record("a@example.com")
    clock.advance(100)
    await ledger.record("a@example.com")

    assert await ledger.purge_expired("a@example.com") == [1000.0, 1100.0]
    assert await ledger.purge_expired("unknown") == []


@pytest.mark.asyncio
async def test_purge_forgets_expired_entries():
    clock = FakeClock()
    ledger = AttemptLedger(window_seconds=900, clock=clock)
    await ledger.record("k")
    clock.advance(500)
    await ledger.record("k")

    clock.advance(401)
    assert await ledger.purge_expired("k") == [1500.0]

    clock.advance(1000)
    assert await ledger.purge_expired("k") == []


@pytest.mark.asyncio
async def test_admit_records_every_key_only_when_all_pass():
    clock = FakeClock()
    ledger = AttemptLedger(window_seconds=60, clock=clock)
    await ledger.record("ip")
    await ledger.record("ip")

    assert await ledger.admit(["mail", "ip"], max_attempts=2) is False
    assert await ledger.purge_expired("mail") == []

    assert await ledger.admit(["mail", "other-ip"], max_attempts=2) is True
    assert len(await ledger.purge_expired("mail")) == 1
    assert len(await ledger.purge_expired("other-ip")) == 1


@pytest.mark.asyncio
async def test_admit_counts_duplicate_keys_once():
    ledger = AttemptLedger(window_seconds=60, clock=FakeClock())
    assert await ledger.admit(["same", "same"], max_attempts=1) is True
    assert len(await ledger.purge_expired("same")) == 1


@pytest.mark.asyncio
async def test_concurrent_admits_never_exceed_limit():
    ledger = AttemptLedger(window_seconds=60, clock=FakeClock())

    results = await asyncio.gather(*(ledger.admit(["burst"], max_attempts=3) for _ in range(10)))

    assert results.count(True) == 3
    assert len(await ledger.purge_expired("burst")) == 3
