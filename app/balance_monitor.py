from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from domain.detection import DetectionConfig, evaluate
from domain.models import DetectionResult, Snapshot
from domain.ports import AlertSink, BalanceProvider

from .snapshotter import Snapshotter


@dataclass(frozen=True)
class MonitorStep:
    current: Snapshot
    result: DetectionResult


class BalanceMonitor:
    """
    Captura + avaliação + entrega.
    Não guarda histórico: quem chama mantém o snapshot anterior
    (step.current vira o previous da próxima chamada).
    """

    def __init__(
        self,
        provider: BalanceProvider,
        cfg: DetectionConfig,
        sinks: Sequence[AlertSink] = (),
        *,
        snapshotter: Snapshotter | None = None,
    ):
        self._provider = provider
        self._cfg = cfg
        self._sinks: List[AlertSink] = list(sinks)
        self._snapshotter = snapshotter or Snapshotter(cfg.target)

        self.total_checks = 0
        self.total_alerts = 0
        self.total_sink_failures = 0

    def check(self, previous: Optional[Snapshot]) -> MonitorStep:
        # ProviderError sobe sem ser tratado aqui
        current = self._snapshotter.capture(self._provider)
        self.total_checks += 1

        result = evaluate(current, previous, self._cfg)
        if result.triggered:
            self.total_alerts += 1
            for sink in self._sinks:
                # um sink com falha não impede os demais nem perde o snapshot
                try:
                    sink.handle(result.alert)
                except Exception:
                    self.total_sink_failures += 1

        return MonitorStep(current=current, result=result)
