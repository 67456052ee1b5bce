from __future__ import annotations

import itertools
from typing import Any, List, Optional

import httpx

from domain.errors import ProviderError
from domain.models import MAX_UINT256
from domain.ports import BalanceProvider, BalanceQuote


class JsonRpcBalanceProvider(BalanceProvider):
    """
    Saldo via JSON-RPC (eth_blockNumber + eth_getBalance).
    O saldo é lido no bloco devolvido por eth_blockNumber, então
    o par (quantity, as_of) é consistente.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout_sec: float = 5.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._url = url
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout_sec)
        self._ids = itertools.count(1)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "JsonRpcBalanceProvider":
        return self

    def __exit__(self, *_exc) -> None:
        self.close()

    def get_quantity(self, target: str) -> BalanceQuote:
        block = self._hex_uint(self._call("eth_blockNumber", []), "eth_blockNumber")
        balance = self._hex_uint(
            self._call("eth_getBalance", [target, hex(block)]),
            "eth_getBalance",
        )
        if balance > MAX_UINT256:
            raise ProviderError(f"eth_getBalance fora de 256 bits: {balance}")
        return BalanceQuote(quantity=balance, as_of=block)

    def _call(self, method: str, params: List[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        try:
            r = self._client.post(self._url, json=payload)
            r.raise_for_status()
            body = r.json()
        except httpx.HTTPError as e:
            raise ProviderError(f"{method}: falha HTTP: {e}") from e
        except ValueError as e:
            raise ProviderError(f"{method}: resposta não é JSON") from e

        if not isinstance(body, dict):
            raise ProviderError(f"{method}: resposta inesperada: {body!r}")
        if body.get("error") is not None:
            raise ProviderError(f"{method}: erro RPC: {body['error']}")
        if "result" not in body:
            raise ProviderError(f"{method}: resposta sem 'result'")
        return body["result"]

    @staticmethod
    def _hex_uint(value: Any, method: str) -> int:
        if not isinstance(value, str) or not value.startswith("0x"):
            raise ProviderError(f"{method}: resultado não é hex: {value!r}")
        try:
            return int(value, 16)
        except ValueError as e:
            raise ProviderError(f"{method}: resultado não é hex: {value!r}") from e
