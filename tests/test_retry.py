from email.message import EmailMessage

import pytest

from async_code_mailer.retry import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_RETRY_DELAYS,
    RetrySender,
    calculate_retry_delay,
)
from tests.conftest import DummyTransport


def make_message() -> EmailMessage:
    msg = EmailMessage()
    msg["To"] = "user@example.com"
    msg["Subject"] = "Code"
    msg.set_content("123456")
    return msg


class DummyMetrics:
    def __init__(self):
        self.attempts = []

    def inc_attempt(self, phase, ok):
        self.attempts.append((phase, ok))


class TestCalculateRetryDelay:
    def test_defaults(self):
        assert DEFAULT_MAX_ATTEMPTS == 3
        assert DEFAULT_RETRY_DELAYS == (1.0, 3.0, 7.0)

    def test_indexes_into_delays(self):
        assert calculate_retry_delay(0) == 1.0
        assert calculate_retry_delay(1) == 3.0
        assert calculate_retry_delay(2) == 7.0

    def test_beyond_list_uses_last_delay(self):
        assert calculate_retry_delay(10, (5, 9)) == 9


@pytest.mark.asyncio
async def test_first_attempt_success_does_not_sleep(fake_sleep):
    transport = DummyTransport()
    sender = RetrySender(transport, sleep=fake_sleep)

    result = await sender.send_with_retry(make_message())

    assert result.ok is True
    assert result.attempts == 1
    assert fake_sleep.delays == []


@pytest.mark.asyncio
async def test_always_failing_transport_exhausts_after_three_attempts(fake_sleep):
    transport = DummyTransport(default=False)
    metrics = DummyMetrics()
    sender = RetrySender(transport, sleep=fake_sleep, metrics=metrics)

    result = await sender.send_with_retry(make_message())

    assert result.ok is False
    assert result.attempts == 3
    assert len(transport.sent) == 3
    assert fake_sleep.delays == [1.0, 3.0]
    assert isinstance(result.error, ConnectionError)
    assert metrics.attempts == [("foreground", False)] * 3


@pytest.mark.asyncio
async def test_raised_errors_are_retried_like_failures(fake_sleep):
    transport = DummyTransport(script=[OSError("reset"), TimeoutError("slow"), True])
    sender = RetrySender(transport, sleep=fake_sleep)

    result = await sender.send_with_retry(make_message())

    assert result.ok is True
    assert result.attempts == 3
    assert fake_sleep.delays == [1.0, 3.0]


@pytest.mark.asyncio
async def test_exhaustion_keeps_last_error(fake_sleep):
    transport = DummyTransport(script=[False, RuntimeError("last")], default=False)
    sender = RetrySender(transport, max_attempts=2, delays=(0.5,), sleep=fake_sleep)

    result = await sender.send_with_retry(make_message())

    assert result.ok is False
    assert str(result.error) == "last"
    assert fake_sleep.delays == [0.5]


def test_empty_delays_rejected():
    with pytest.raises(ValueError):
        RetrySender(DummyTransport(), delays=())
