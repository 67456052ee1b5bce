from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .models import (
    MILLI_PERCENT_SCALE,
    AlertReason,
    AlertRecord,
    DetectionResult,
    SkipReason,
    Snapshot,
    normalize_target,
    stored_milli_percent,
)

# 300 milésimos de ponto percentual = 0.3%
DEFAULT_THRESHOLD_MILLI_PERCENT = 300


@dataclass(frozen=True)
class DetectionConfig:
    target: str
    threshold_milli_percent: int = DEFAULT_THRESHOLD_MILLI_PERCENT
    min_previous_quantity: int = 0  # 0 = dust guard desligado
    min_absolute_diff: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "target", normalize_target(self.target))
        for name in ("threshold_milli_percent", "min_previous_quantity", "min_absolute_diff"):
            v = getattr(self, name)
            if not isinstance(v, int) or isinstance(v, bool) or v < 0:
                raise ValueError(f"{name} deve ser inteiro >= 0, recebido {v!r}")


def relative_change_milli_percent(absolute_diff: int, previous: int) -> int:
    """floor(diff * 100000 / previous), só aritmética inteira."""
    if previous <= 0:
        raise ValueError("previous deve ser > 0")
    return absolute_diff * MILLI_PERCENT_SCALE // previous


def evaluate(
    current: Optional[Snapshot],
    previous: Optional[Snapshot],
    cfg: DetectionConfig,
) -> DetectionResult:
    """
    Compara o snapshot atual com o anterior.

    Função pura: sem I/O e sem estado. Toda rejeição por guarda devolve
    DetectionResult(triggered=False) com o motivo em skip_reason.
    """
    # startup: ainda não há par para comparar
    if current is None or previous is None:
        return DetectionResult.skipped(SkipReason.NO_HISTORY)

    if current.target != previous.target:
        return DetectionResult.skipped(SkipReason.TARGET_MISMATCH)

    prev_q = previous.quantity
    cur_q = current.quantity

    if cfg.min_previous_quantity > 0 and prev_q <= cfg.min_previous_quantity:
        return DetectionResult.skipped(SkipReason.DUST)

    diff = abs(cur_q - prev_q)
    if diff < cfg.min_absolute_diff:
        return DetectionResult.skipped(SkipReason.BELOW_MIN_DIFF)

    if prev_q == 0:
        # qualquer saída do zero é SPIKE, independente do threshold
        if cur_q == 0:
            return DetectionResult.skipped(SkipReason.ZERO_BASELINE)
    else:
        milli = relative_change_milli_percent(diff, prev_q)
        if milli < cfg.threshold_milli_percent:
            return DetectionResult.skipped(SkipReason.BELOW_THRESHOLD)

    reason = AlertReason.DROP if cur_q < prev_q else AlertReason.SPIKE

    return DetectionResult.fired(
        AlertRecord(
            reason=reason,
            target=current.target,
            previous_quantity=prev_q,
            current_quantity=cur_q,
            absolute_diff=diff,
            relative_change_milli_percent=stored_milli_percent(diff, prev_q),
            previous_sequence=previous.sequence,
            current_sequence=current.sequence,
        )
    )
