from __future__ import annotations

from domain.codec import encode_snapshot
from domain.errors import ProviderError
from domain.models import Snapshot, normalize_target
from domain.ports import BalanceProvider


class Snapshotter:
    """
    Captura o saldo de UM target fixo.
    Uma leitura por chamada, sem retry: falha do provider sobe para quem chamou.
    """

    def __init__(self, target: str):
        self.target = normalize_target(target)

    def capture(self, provider: BalanceProvider) -> Snapshot:
        quote = provider.get_quantity(self.target)
        try:
            return Snapshot(
                target=self.target,
                quantity=quote.quantity,
                sequence=quote.as_of,
            )
        except ValueError as e:
            raise ProviderError(f"provider devolveu dado inválido para {self.target}: {e}") from e

    def capture_encoded(self, provider: BalanceProvider) -> bytes:
        return encode_snapshot(self.capture(provider))
