from __future__ import annotations

import argparse
from typing import List, Optional

from config import AppConfig, load_config
from app.balance_monitor import BalanceMonitor, MonitorStep
from domain.errors import ProviderError
from domain.models import Snapshot
from domain.ports import AlertSink
from infra.alerts_csv_sink import AsyncCsvAlertWriter
from infra.http_alert_sink import HttpAlertSink
from infra.jsonrpc_provider import JsonRpcBalanceProvider
from infra.sinks import PrintAlertSink


def _build_sinks(cfg: AppConfig) -> tuple[List[AlertSink], list]:
    """Devolve (sinks, recursos com start/stop)."""
    sinks: List[AlertSink] = []
    managed: list = []

    if cfg.alerts.print:
        sinks.append(PrintAlertSink())

    if cfg.alerts.csv.enabled:
        c = cfg.alerts.csv
        writer = AsyncCsvAlertWriter(
            c.csv_path,
            queue_max=c.queue_max,
            drop_on_full=c.drop_on_full,
            flush_every_n=c.flush_every_n,
            flush_every_sec=c.flush_every_sec,
        )
        sinks.append(writer)
        managed.append(writer)

    if cfg.alerts.webhook.enabled:
        w = cfg.alerts.webhook
        hook = HttpAlertSink(
            w.url,
            workers=w.workers,
            queue_max=w.queue_max,
            timeout_sec=w.timeout_sec,
            max_retries=w.max_retries,
            drop_on_full=w.drop_on_full,
        )
        sinks.append(hook)
        managed.append(hook)

    print(
        f"[alerts] print={cfg.alerts.print} csv={cfg.alerts.csv.enabled} "
        f"webhook={cfg.alerts.webhook.enabled}"
    )
    return sinks, managed


def _status(step: MonitorStep) -> str:
    cur = step.current
    if step.result.triggered:
        outcome = f"ALERT {step.result.alert.reason.value}"
    else:
        outcome = f"ok ({step.result.skip_reason.value})"
    return f"[monitor] block={cur.sequence} balance={cur.quantity:,} -> {outcome}"


def run_once(monitor: BalanceMonitor, previous: Optional[Snapshot]) -> Optional[Snapshot]:
    """Uma amostra. Em falha do provider mantém o snapshot anterior."""
    try:
        step = monitor.check(previous)
    except ProviderError as e:
        print(f"[provider] {e}", flush=True)
        return previous
    print(_status(step), flush=True)
    return step.current


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Monitor de variação de saldo")
    parser.add_argument("--config", default="config.yaml")
    args = parser.parse_args(argv)

    cfg = load_config(args.config)
    det = cfg.detection
    print(
        f"[monitor] target={det.target} threshold={det.threshold_milli_percent} (0.001%) "
        f"min_previous={det.min_previous_quantity} min_diff={det.min_absolute_diff}"
    )

    sinks, managed = _build_sinks(cfg)
    for m in managed:
        m.start()

    provider = JsonRpcBalanceProvider(cfg.rpc_url, timeout_sec=cfg.rpc_timeout_sec)
    monitor = BalanceMonitor(provider, det, sinks)

    try:
        previous = run_once(monitor, None)
        while True:
            print("ENTER = nova amostra, q + ENTER = sair", flush=True)
            if input().strip().lower() == "q":
                break
            previous = run_once(monitor, previous)
    finally:
        try:
            for m in managed:
                m.stop()
        finally:
            provider.close()
        print(
            f"[monitor] checks={monitor.total_checks} alerts={monitor.total_alerts} "
            f"sink_failures={monitor.total_sink_failures}"
        )


if __name__ == "__main__":
    main()
