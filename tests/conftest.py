from __future__ import annotations

from typing import Callable

import pytest

from domain.detection import DetectionConfig
from domain.models import AlertReason, AlertRecord, Snapshot
from domain.ports import BalanceQuote

TARGET = "0x00000000000000000000000000000000000000aa"
OTHER_TARGET = "0x00000000000000000000000000000000000000bb"


@pytest.fixture
def target() -> str:
    return TARGET


@pytest.fixture
def other_target() -> str:
    return OTHER_TARGET


@pytest.fixture
def cfg() -> DetectionConfig:
    return DetectionConfig(target=TARGET)


@pytest.fixture
def make_snapshot() -> Callable[..., Snapshot]:
    def _make(quantity: int, sequence: int = 100, target: str = TARGET) -> Snapshot:
        return Snapshot(target=target, quantity=quantity, sequence=sequence)

    return _make


@pytest.fixture
def sample_alert() -> AlertRecord:
    return AlertRecord(
        reason=AlertReason.SPIKE,
        target=TARGET,
        previous_quantity=1_000_000,
        current_quantity=1_003_000,
        absolute_diff=3_000,
        relative_change_milli_percent=300,
        previous_sequence=100,
        current_sequence=101,
    )


class FakeProvider:
    """Devolve as cotações em ordem; Exception na fila é levantada."""

    def __init__(self, *quotes):
        self._quotes = list(quotes)
        self.calls: list[str] = []

    def get_quantity(self, target: str) -> BalanceQuote:
        self.calls.append(target)
        q = self._quotes.pop(0)
        if isinstance(q, Exception):
            raise q
        return q


class RecordingSink:
    def __init__(self) -> None:
        self.alerts: list[AlertRecord] = []

    def handle(self, alert: AlertRecord) -> None:
        self.alerts.append(alert)


@pytest.fixture
def fake_provider() -> Callable[..., FakeProvider]:
    def _make(*quotes) -> FakeProvider:
        return FakeProvider(*quotes)

    return _make


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


def quote(quantity: int, as_of: int = 100) -> BalanceQuote:
    return BalanceQuote(quantity=quantity, as_of=as_of)


@pytest.fixture
def make_quote() -> Callable[..., BalanceQuote]:
    return quote
