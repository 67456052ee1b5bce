from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from domain.detection import DEFAULT_THRESHOLD_MILLI_PERCENT, DetectionConfig


@dataclass(frozen=True)
class CsvAlertConfig:
    enabled: bool = False

    csv_path: str = "alerts.csv"
    queue_max: int = 20000
    drop_on_full: bool = True
    flush_every_n: int = 200
    flush_every_sec: float = 2.0


@dataclass(frozen=True)
class WebhookAlertConfig:
    enabled: bool = False

    url: str = ""
    workers: int = 2
    queue_max: int = 5000
    timeout_sec: float = 2.0
    max_retries: int = 3
    drop_on_full: bool = False


@dataclass(frozen=True)
class AlertsConfig:
    print: bool = True
    csv: CsvAlertConfig = field(default_factory=CsvAlertConfig)
    webhook: WebhookAlertConfig = field(default_factory=WebhookAlertConfig)


@dataclass(frozen=True)
class AppConfig:
    rpc_url: str
    detection: DetectionConfig

    rpc_timeout_sec: float = 5.0
    alerts: AlertsConfig = field(default_factory=AlertsConfig)


def _req(d: Mapping[str, Any], path: str) -> Any:
    cur: Any = d
    for part in path.split("."):
        if not isinstance(cur, Mapping) or part not in cur:
            raise ValueError(f"Config inválida: campo obrigatório '{path}' ausente.")
        cur = cur[part]
    return cur


def _opt(d: Mapping[str, Any], path: str, default: Any) -> Any:
    cur: Any = d
    for part in path.split("."):
        if not isinstance(cur, Mapping) or part not in cur:
            return default
        cur = cur[part]
    return cur


def _to_int(x: Any, path: str) -> int:
    # bool e float não passam (1.5 virando 1 esconderia erro de config)
    if isinstance(x, bool) or isinstance(x, float):
        raise ValueError(f"Config inválida: '{path}' deve ser inteiro, recebido {x!r}.")
    try:
        return int(x)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Config inválida: '{path}' deve ser inteiro, recebido {x!r}.") from e


def _to_detection(x: Any, path: str) -> DetectionConfig:
    if not isinstance(x, Mapping):
        raise ValueError(f"Config inválida: '{path}' deve ser um mapa (dict).")

    target = _req(x, "target")
    # YAML lê 0x... sem aspas como inteiro hexadecimal
    if not isinstance(target, str):
        raise ValueError(f"Config inválida: '{path}.target' deve ser string entre aspas.")
    threshold = _to_int(
        _opt(x, "threshold_milli_percent", DEFAULT_THRESHOLD_MILLI_PERCENT),
        f"{path}.threshold_milli_percent",
    )
    min_prev = _to_int(_opt(x, "min_previous_quantity", 0), f"{path}.min_previous_quantity")
    min_diff = _to_int(_opt(x, "min_absolute_diff", 0), f"{path}.min_absolute_diff")

    try:
        return DetectionConfig(
            target=str(target),
            threshold_milli_percent=threshold,
            min_previous_quantity=min_prev,
            min_absolute_diff=min_diff,
        )
    except ValueError as e:
        raise ValueError(f"Config inválida: '{path}': {e}") from e


def _to_alerts(x: Any) -> AlertsConfig:
    if x is None:
        return AlertsConfig()
    if not isinstance(x, Mapping):
        raise ValueError("Config inválida: 'alerts' deve ser um mapa (dict).")

    print_enabled = bool(_opt(x, "print", True))

    # ---- csv (opcional) ----
    csv_raw = _opt(x, "csv", None)
    csv_cfg = CsvAlertConfig()
    if isinstance(csv_raw, Mapping):
        csv_cfg = CsvAlertConfig(
            enabled=bool(_opt(csv_raw, "enabled", False)),
            csv_path=str(_opt(csv_raw, "csv_path", "alerts.csv")),
            queue_max=_to_int(_opt(csv_raw, "queue_max", 20000), "alerts.csv.queue_max"),
            drop_on_full=bool(_opt(csv_raw, "drop_on_full", True)),
            flush_every_n=_to_int(_opt(csv_raw, "flush_every_n", 200), "alerts.csv.flush_every_n"),
            flush_every_sec=float(_opt(csv_raw, "flush_every_sec", 2.0)),
        )

    # ---- webhook (opcional) ----
    wh_raw = _opt(x, "webhook", None)
    wh_cfg = WebhookAlertConfig()
    if isinstance(wh_raw, Mapping):
        enabled = bool(_opt(wh_raw, "enabled", False))
        url = _req(wh_raw, "url") if enabled else _opt(wh_raw, "url", "")
        wh_cfg = WebhookAlertConfig(
            enabled=enabled,
            url=str(url),
            workers=_to_int(_opt(wh_raw, "workers", 2), "alerts.webhook.workers"),
            queue_max=_to_int(_opt(wh_raw, "queue_max", 5000), "alerts.webhook.queue_max"),
            timeout_sec=float(_opt(wh_raw, "timeout_sec", 2.0)),
            max_retries=_to_int(_opt(wh_raw, "max_retries", 3), "alerts.webhook.max_retries"),
            drop_on_full=bool(_opt(wh_raw, "drop_on_full", False)),
        )

    return AlertsConfig(print=print_enabled, csv=csv_cfg, webhook=wh_cfg)


def parse_config(data: Mapping[str, Any]) -> AppConfig:
    rpc_url = _req(data, "rpc_url")
    rpc_timeout_sec = float(_opt(data, "rpc_timeout_sec", 5.0))

    detection = _to_detection(_req(data, "detection"), "detection")
    alerts = _to_alerts(_opt(data, "alerts", None))

    return AppConfig(
        rpc_url=str(rpc_url),
        rpc_timeout_sec=rpc_timeout_sec,
        detection=detection,
        alerts=alerts,
    )


def load_config(path: str = "config.yaml") -> AppConfig:
    p = Path(path)
    data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    return parse_config(data)
