from __future__ import annotations
from domain.ports import AlertSink
from domain.models import AlertRecord

class PrintAlertSink(AlertSink):
    def handle(self, alert: AlertRecord) -> None:
        print(
            f"[alert] {alert.reason.value} target={alert.target} "
            f"previous={alert.previous_quantity:,} current={alert.current_quantity:,} "
            f"diff={alert.absolute_diff:,} change={alert.percent:.3f}% "
            f"blocks={alert.previous_sequence}->{alert.current_sequence}",
            flush=True,
        )
