from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional

MAX_UINT256 = 2 ** 256 - 1
TARGET_BYTES = 20

# 0.001% -> diff * 100000 / previous
MILLI_PERCENT_SCALE = 100_000


def normalize_target(value: str) -> str:
    """Endereço da conta monitorada: '0x' + 40 hex, sempre minúsculo."""
    if not isinstance(value, str):
        raise ValueError(f"target deve ser str, recebido {type(value).__name__}")
    s = value.strip().lower()
    if s.startswith("0x"):
        s = s[2:]
    if len(s) != TARGET_BYTES * 2:
        raise ValueError(f"target com tamanho inválido: {value!r}")
    try:
        bytes.fromhex(s)
    except ValueError as e:
        raise ValueError(f"target não é hex: {value!r}") from e
    return "0x" + s


def stored_milli_percent(absolute_diff: int, previous: int) -> int:
    """
    Valor gravado no AlertRecord (cabe numa palavra de 256 bits).
    previous == 0: variação indefinida, reportada como 0.
    Saturado em MAX_UINT256: com previous pequeno diff * 100000 passa de 256 bits.
    """
    if previous <= 0:
        return 0
    return min(absolute_diff * MILLI_PERCENT_SCALE // previous, MAX_UINT256)


def _check_uint(name: str, v: int, upper: int = MAX_UINT256) -> None:
    # bool é subclasse de int
    if not isinstance(v, int) or isinstance(v, bool):
        raise ValueError(f"{name} deve ser int, recebido {type(v).__name__}")
    if v < 0 or v > upper:
        raise ValueError(f"{name} fora do intervalo: {v}")


@dataclass(frozen=True)
class Snapshot:
    target: str
    quantity: int
    sequence: int  # altura do bloco

    def __post_init__(self) -> None:
        object.__setattr__(self, "target", normalize_target(self.target))
        _check_uint("quantity", self.quantity)
        _check_uint("sequence", self.sequence)


class AlertReason(str, Enum):
    DROP = "DROP"
    SPIKE = "SPIKE"


class SkipReason(str, Enum):
    """Por que o detector não disparou (informativo, nunca é erro)."""
    NO_HISTORY = "no_history"
    TARGET_MISMATCH = "target_mismatch"
    DUST = "dust"
    BELOW_MIN_DIFF = "below_min_diff"
    ZERO_BASELINE = "zero_baseline"
    BELOW_THRESHOLD = "below_threshold"


@dataclass(frozen=True)
class AlertRecord:
    reason: AlertReason
    target: str
    previous_quantity: int
    current_quantity: int
    absolute_diff: int
    relative_change_milli_percent: int
    previous_sequence: int
    current_sequence: int

    def __post_init__(self) -> None:
        if not isinstance(self.reason, AlertReason):
            raise ValueError(f"reason inválido: {self.reason!r}")
        object.__setattr__(self, "target", normalize_target(self.target))
        for name in (
            "previous_quantity",
            "current_quantity",
            "absolute_diff",
            "relative_change_milli_percent",
            "previous_sequence",
            "current_sequence",
        ):
            _check_uint(name, getattr(self, name))

        if self.absolute_diff != abs(self.current_quantity - self.previous_quantity):
            raise ValueError(
                f"absolute_diff={self.absolute_diff} não bate com "
                f"|{self.current_quantity} - {self.previous_quantity}|"
            )

        expected = stored_milli_percent(self.absolute_diff, self.previous_quantity)
        if self.relative_change_milli_percent != expected:
            raise ValueError(
                f"relative_change_milli_percent={self.relative_change_milli_percent} "
                f"esperado {expected}"
            )

    @property
    def percent(self) -> float:
        """Somente para exibição (%). Comparações usam o valor inteiro."""
        return self.relative_change_milli_percent / 1000.0


@dataclass(frozen=True)
class DetectionResult:
    triggered: bool
    alert: Optional[AlertRecord] = None
    skip_reason: Optional[SkipReason] = None

    def __post_init__(self) -> None:
        if self.triggered and self.alert is None:
            raise ValueError("DetectionResult disparado sem alert")
        if not self.triggered and self.alert is not None:
            raise ValueError("DetectionResult não disparado com alert")
        if self.triggered and self.skip_reason is not None:
            raise ValueError("skip_reason só vale para resultado não disparado")

    @classmethod
    def fired(cls, alert: AlertRecord) -> "DetectionResult":
        return cls(triggered=True, alert=alert)

    @classmethod
    def skipped(cls, reason: SkipReason) -> "DetectionResult":
        return cls(triggered=False, skip_reason=reason)
