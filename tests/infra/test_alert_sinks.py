from __future__ import annotations

import csv
import json
import threading

import httpx
import pytest

from domain.codec import alert_from_dict, decode_alert_hex
from infra.alerts_csv_sink import AsyncCsvAlertWriter
from infra.http_alert_sink import HttpAlertSink, build_webhook_payload
from infra.sinks import PrintAlertSink


# -----------------------------
# PrintAlertSink
# -----------------------------

def test_print_sink_renders_one_line(capsys, sample_alert) -> None:
    PrintAlertSink().handle(sample_alert)

    out = capsys.readouterr().out.strip().splitlines()
    assert len(out) == 1
    line = out[0]
    assert line.startswith("[alert] SPIKE")
    assert sample_alert.target in line
    assert "previous=1,000,000" in line
    assert "change=0.300%" in line
    assert "blocks=100->101" in line


# -----------------------------
# AsyncCsvAlertWriter
# -----------------------------

def test_csv_writer_flushes_on_stop(tmp_path, sample_alert) -> None:
    path = tmp_path / "alerts.csv"
    w = AsyncCsvAlertWriter(str(path), flush_every_n=1000, flush_every_sec=60.0)
    w.start()
    w.handle(sample_alert)
    w.handle(sample_alert)
    w.stop()

    with open(path, newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))

    assert rows[0] == AsyncCsvAlertWriter.HEADER
    assert len(rows) == 3
    row = dict(zip(rows[0], rows[1]))
    assert row["reason"] == "SPIKE"
    assert row["previous"] == "1000000"
    assert row["milli_percent"] == "300"
    assert decode_alert_hex(row["payload"]) == sample_alert
    assert w.total_written == 2


def test_csv_writer_appends_without_duplicating_header(tmp_path, sample_alert) -> None:
    path = tmp_path / "alerts.csv"
    for _ in range(2):
        w = AsyncCsvAlertWriter(str(path))
        w.start()
        w.handle(sample_alert)
        w.stop()

    with open(path, newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    assert [r[0] for r in rows].count("utc_time") == 1
    assert len(rows) == 3


def test_csv_writer_can_restart_after_stop(tmp_path, sample_alert) -> None:
    path = tmp_path / "alerts.csv"
    w = AsyncCsvAlertWriter(str(path))
    w.start()
    w.handle(sample_alert)
    w.stop()

    w.start()
    w.handle(sample_alert)
    w.stop()

    with open(path, newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    assert len(rows) == 3
    assert w.total_written == 2


def test_csv_writer_requires_start(tmp_path, sample_alert) -> None:
    w = AsyncCsvAlertWriter(str(tmp_path / "x.csv"))
    with pytest.raises(RuntimeError):
        w.handle(sample_alert)


def test_csv_writer_counts_drops_when_full(tmp_path, sample_alert) -> None:
    w = AsyncCsvAlertWriter(str(tmp_path / "x.csv"), queue_max=1, drop_on_full=True)
    # sem worker rodando: a fila enche na segunda chamada
    w._started = True
    w.handle(sample_alert)
    w.handle(sample_alert)

    assert w.total_dropped == 1


# -----------------------------
# HttpAlertSink
# -----------------------------

def test_webhook_payload_is_decodable(sample_alert) -> None:
    payload = json.loads(json.dumps(build_webhook_payload(sample_alert)))

    assert alert_from_dict(payload["alert"]) == sample_alert
    assert decode_alert_hex(payload["payload"]) == sample_alert


def test_http_sink_posts_alert(sample_alert) -> None:
    received = []
    lock = threading.Lock()

    def handler(request: httpx.Request) -> httpx.Response:
        with lock:
            received.append(json.loads(request.content))
        return httpx.Response(204)

    sink = HttpAlertSink("http://hook/alerts", workers=1, transport=httpx.MockTransport(handler))
    sink.start()
    sink.handle(sample_alert)
    sink.stop()

    assert len(received) == 1
    assert decode_alert_hex(received[0]["payload"]) == sample_alert
    assert sink.total_published == 1
    assert sink.total_sent == 1
    assert sink.total_failed == 0


def test_http_sink_retries_then_succeeds(sample_alert, monkeypatch) -> None:
    monkeypatch.setattr("infra.http_alert_sink.time.sleep", lambda _s: None)
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(500 if len(calls) < 3 else 200)

    sink = HttpAlertSink("http://hook", workers=1, max_retries=3, transport=httpx.MockTransport(handler))
    sink.start()
    sink.handle(sample_alert)
    sink.stop()

    assert len(calls) == 3
    assert sink.total_sent == 1
    assert sink.total_failed == 0


def test_http_sink_gives_up_after_max_retries(sample_alert, monkeypatch) -> None:
    monkeypatch.setattr("infra.http_alert_sink.time.sleep", lambda _s: None)
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(502)

    sink = HttpAlertSink("http://hook", workers=1, max_retries=2, transport=httpx.MockTransport(handler))
    sink.start()
    sink.handle(sample_alert)
    sink.stop()

    assert len(calls) == 3
    assert sink.total_sent == 0
    assert sink.total_failed == 1


def test_http_sink_requires_start(sample_alert) -> None:
    with pytest.raises(RuntimeError):
        HttpAlertSink("http://hook").handle(sample_alert)
