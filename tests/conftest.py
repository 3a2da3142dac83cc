"""Shared test doubles for the delivery pipeline."""

from typing import List

import pytest

from async_code_mailer.models import SendResult
from async_code_mailer.transport import Transport


class DummyTransport(Transport):
    """Transport replaying a scripted list of outcomes.

    Each entry of ``script`` is ``True`` (success), ``False`` (failed result)
    or an exception instance (raised). Once the script is used up,
    ``default`` decides.
    """

    def __init__(self, script=None, default: bool = True, simulated: bool = False):
        self.script = list(script or [])
        self.default = default
        self.simulated = simulated
        self.sent: List = []

    async def send(self, message):
        self.sent.append(message)
        step = self.script.pop(0) if self.script else self.default
        if isinstance(step, BaseException):
            raise step
        if step:
            return SendResult(ok=True, info=f"<id-{len(self.sent)}@test>")
        return SendResult(ok=False, error=ConnectionError("smtp down"))


class FakeSleep:
    """Record requested delays without waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def fake_clock():
    return FakeClock()
