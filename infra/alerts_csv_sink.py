from __future__ import annotations

import csv
import os
import threading
import time
from queue import Queue, Full, Empty
from datetime import datetime, timezone
from typing import List, Tuple

from domain.codec import encode_alert_hex
from domain.models import AlertRecord
from domain.ports import AlertSink


class AsyncCsvAlertWriter(AlertSink):
    """
    Escrita assíncrona de alertas em CSV.
    Não bloqueia quem chama handle().
    """

    HEADER = [
        "utc_time",
        "reason",
        "target",
        "previous",
        "current",
        "abs_diff",
        "milli_percent",
        "previous_seq",
        "current_seq",
        "payload",
    ]

    def __init__(
        self,
        csv_path: str,
        *,
        queue_max: int = 20000,
        drop_on_full: bool = True,
        flush_every_n: int = 200,
        flush_every_sec: float = 2.0,
    ):
        self.csv_path = csv_path
        self.drop_on_full = drop_on_full
        self.flush_every_n = flush_every_n
        self.flush_every_sec = flush_every_sec

        # (epoch de recebimento, alerta)
        self._q: Queue[Tuple[float, AlertRecord]] = Queue(maxsize=queue_max)
        self._stop = threading.Event()
        self._t: threading.Thread | None = None
        self._started = False

        self.total_written = 0
        self.total_dropped = 0

    def start(self) -> None:
        if self._started:
            return
        # thread nova a cada start: Thread não reinicia depois de join
        self._stop = threading.Event()
        self._t = threading.Thread(target=self._worker, args=(self._stop,), daemon=True)
        self._t.start()
        self._started = True

    def stop(self) -> None:
        if not self._started:
            return
        self._stop.set()
        if self._t is not None:
            self._t.join(timeout=5)
            self._t = None
        self._started = False

    def handle(self, alert: AlertRecord) -> None:
        if not self._started:
            raise RuntimeError("AsyncCsvAlertWriter.handle chamado antes de start()")

        item = (time.time(), alert)
        try:
            self._q.put_nowait(item)
        except Full:
            if self.drop_on_full:
                self.total_dropped += 1
            else:
                self._q.put(item)

    @staticmethod
    def _fmt_epoch(epoch: float) -> str:
        dt = datetime.fromtimestamp(epoch, tz=timezone.utc)
        return dt.strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]

    def _ensure_header(self) -> None:
        if not os.path.exists(self.csv_path) or os.path.getsize(self.csv_path) == 0:
            with open(self.csv_path, "a", newline="", encoding="utf-8") as f:
                csv.writer(f).writerow(self.HEADER)

    def _flush(self, batch: List[Tuple[float, AlertRecord]]) -> None:
        if not batch:
            return
        self._ensure_header()
        with open(self.csv_path, "a", newline="", encoding="utf-8") as f:
            w = csv.writer(f)
            for epoch, a in batch:
                w.writerow([
                    self._fmt_epoch(epoch),
                    a.reason.value,
                    a.target,
                    a.previous_quantity,
                    a.current_quantity,
                    a.absolute_diff,
                    a.relative_change_milli_percent,
                    a.previous_sequence,
                    a.current_sequence,
                    encode_alert_hex(a),
                ])
        self.total_written += len(batch)

    def _drain(self, batch: List[Tuple[float, AlertRecord]]) -> None:
        while True:
            try:
                batch.append(self._q.get_nowait())
            except Empty:
                return

    def _worker(self, stop: threading.Event) -> None:
        batch: List[Tuple[float, AlertRecord]] = []
        last_flush = time.time()

        while not stop.is_set():
            try:
                item = self._q.get(timeout=0.2)
                batch.append(item)
            except Empty:
                pass

            now = time.time()
            if batch and (
                len(batch) >= self.flush_every_n
                or (now - last_flush) >= self.flush_every_sec
            ):
                self._flush(batch)
                batch.clear()
                last_flush = now

        # o que ainda estiver na fila sai no stop
        self._drain(batch)
        if batch:
            self._flush(batch)
