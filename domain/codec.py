"""
Codificação plana dos registros em palavras de 32 bytes (big-endian, estilo ABI).

Alerta (8 palavras, ordem fixa):
    reason, target, previous, current, abs_diff, milli_percent, previous_seq, current_seq

Snapshot (4 palavras):
    version, target, quantity, sequence

reason: 0 = DROP, 1 = SPIKE. target: endereço de 20 bytes alinhado à direita.
"""
from __future__ import annotations

from typing import Any, Dict, List, Mapping

from .errors import DecodeError
from .models import TARGET_BYTES, AlertReason, AlertRecord, Snapshot

WORD = 32
ALERT_WORDS = 8
SNAPSHOT_WORDS = 4
SNAPSHOT_VERSION = 1

_REASON_CODES = {AlertReason.DROP: 0, AlertReason.SPIKE: 1}
_REASON_BY_CODE = {v: k for k, v in _REASON_CODES.items()}

_ALERT_FIELDS = (
    "reason",
    "target",
    "previous_quantity",
    "current_quantity",
    "absolute_diff",
    "relative_change_milli_percent",
    "previous_sequence",
    "current_sequence",
)


def _word(v: int) -> bytes:
    return int(v).to_bytes(WORD, "big")


def _target_word(target: str) -> bytes:
    return bytes.fromhex(target[2:]).rjust(WORD, b"\x00")


def _split(buf: bytes, n_words: int, what: str) -> List[bytes]:
    if not isinstance(buf, (bytes, bytearray, memoryview)):
        raise DecodeError(f"{what}: esperado bytes, recebido {type(buf).__name__}")
    buf = bytes(buf)
    if len(buf) != n_words * WORD:
        raise DecodeError(f"{what}: esperado {n_words * WORD} bytes, recebido {len(buf)}")
    return [buf[i * WORD:(i + 1) * WORD] for i in range(n_words)]


def _read_target(word: bytes, what: str) -> str:
    pad = WORD - TARGET_BYTES
    if any(word[:pad]):
        raise DecodeError(f"{what}: padding do target não é zero")
    return "0x" + word[pad:].hex()


# -----------------------------
# Alerta
# -----------------------------

def encode_alert(alert: AlertRecord) -> bytes:
    return b"".join((
        _word(_REASON_CODES[alert.reason]),
        _target_word(alert.target),
        _word(alert.previous_quantity),
        _word(alert.current_quantity),
        _word(alert.absolute_diff),
        _word(alert.relative_change_milli_percent),
        _word(alert.previous_sequence),
        _word(alert.current_sequence),
    ))


def decode_alert(buf: bytes) -> AlertRecord:
    words = _split(buf, ALERT_WORDS, "alert")

    code = int.from_bytes(words[0], "big")
    reason = _REASON_BY_CODE.get(code)
    if reason is None:
        raise DecodeError(f"alert: reason desconhecido: {code}")

    target = _read_target(words[1], "alert")
    values = [int.from_bytes(w, "big") for w in words[2:]]

    try:
        return AlertRecord(reason, target, *values)
    except ValueError as e:
        raise DecodeError(f"alert: campos inconsistentes: {e}") from e


def encode_alert_hex(alert: AlertRecord) -> str:
    return "0x" + encode_alert(alert).hex()


def decode_alert_hex(text: str) -> AlertRecord:
    if not isinstance(text, str) or not text.startswith("0x"):
        raise DecodeError("alert: hex deve começar com '0x'")
    try:
        buf = bytes.fromhex(text[2:])
    except ValueError as e:
        raise DecodeError(f"alert: hex inválido: {e}") from e
    return decode_alert(buf)


# -----------------------------
# Forma estruturada (JSON)
# -----------------------------

def alert_to_dict(alert: AlertRecord) -> Dict[str, Any]:
    # quantidades como string decimal: 256 bits não cabem em número JSON
    return {
        "reason": alert.reason.value,
        "target": alert.target,
        "previous_quantity": str(alert.previous_quantity),
        "current_quantity": str(alert.current_quantity),
        "absolute_diff": str(alert.absolute_diff),
        "relative_change_milli_percent": alert.relative_change_milli_percent,
        "previous_sequence": alert.previous_sequence,
        "current_sequence": alert.current_sequence,
    }


def _int_field(data: Mapping[str, Any], name: str) -> int:
    v = data[name]
    if isinstance(v, bool):
        raise DecodeError(f"alert: campo '{name}' não é inteiro: {v!r}")
    if isinstance(v, int):
        return v
    # só dígitos ASCII: "²" e "١٢" passam em isdigit()
    if isinstance(v, str) and v.isascii() and v.isdigit():
        return int(v)
    raise DecodeError(f"alert: campo '{name}' não é inteiro: {v!r}")


def alert_from_dict(data: Mapping[str, Any]) -> AlertRecord:
    if not isinstance(data, Mapping):
        raise DecodeError(f"alert: esperado objeto, recebido {type(data).__name__}")

    missing = [f for f in _ALERT_FIELDS if f not in data]
    if missing:
        raise DecodeError(f"alert: campos ausentes: {missing}")
    extra = sorted(set(data) - set(_ALERT_FIELDS))
    if extra:
        raise DecodeError(f"alert: campos desconhecidos: {extra}")

    try:
        reason = AlertReason(data["reason"])
    except ValueError as e:
        raise DecodeError(f"alert: reason desconhecido: {data['reason']!r}") from e

    if not isinstance(data["target"], str):
        raise DecodeError("alert: campo 'target' não é string")

    values = [_int_field(data, f) for f in _ALERT_FIELDS[2:]]
    try:
        return AlertRecord(reason, data["target"], *values)
    except ValueError as e:
        raise DecodeError(f"alert: campos inconsistentes: {e}") from e


# -----------------------------
# Snapshot (opaco, versionado)
# -----------------------------

def encode_snapshot(snap: Snapshot) -> bytes:
    return b"".join((
        _word(SNAPSHOT_VERSION),
        _target_word(snap.target),
        _word(snap.quantity),
        _word(snap.sequence),
    ))


def decode_snapshot(buf: bytes) -> Snapshot:
    words = _split(buf, SNAPSHOT_WORDS, "snapshot")

    version = int.from_bytes(words[0], "big")
    if version != SNAPSHOT_VERSION:
        raise DecodeError(f"snapshot: versão não suportada: {version}")

    target = _read_target(words[1], "snapshot")
    try:
        return Snapshot(
            target=target,
            quantity=int.from_bytes(words[2], "big"),
            sequence=int.from_bytes(words[3], "big"),
        )
    except ValueError as e:
        raise DecodeError(f"snapshot: campos inválidos: {e}") from e
