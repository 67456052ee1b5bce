from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from .models import AlertRecord


@dataclass(frozen=True)
class BalanceQuote:
    quantity: int  # saldo (wei), >= 0
    as_of: int     # altura do bloco da leitura


class BalanceProvider(Protocol):
    def get_quantity(self, target: str) -> BalanceQuote:
        """Deve levantar ProviderError se o target não puder ser resolvido."""
        ...


class AlertSink(Protocol):
    def handle(self, alert: AlertRecord) -> None: ...
