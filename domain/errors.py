from __future__ import annotations


class ProviderError(Exception):
    """Fonte do saldo inacessível ou devolveu dado inválido. Sem retry aqui."""


class DecodeError(ValueError):
    """Payload de alerta/snapshot malformado."""
