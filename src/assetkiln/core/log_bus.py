"""Publish/subscribe bus for log records.

Every line emitted by the core logger is also published here so embedders and
tests can observe build progress without scraping stdout. Publishing is
fail-safe: subscriber exceptions never crash the logger.
"""

from __future__ import annotations

import contextlib
import sys
import traceback
from collections.abc import Callable, Iterator
from dataclasses import dataclass

Subscriber = Callable[["LogRecord"], None]


@dataclass(frozen=True)
class LogRecord:
    level_name: str
    plain: str
    logger_name: str


class LogBus:
    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def subscribe(self, cb: Subscriber) -> None:
        self._subscribers.append(cb)

    def unsubscribe(self, cb: Subscriber) -> None:
        with contextlib.suppress(ValueError):
            self._subscribers.remove(cb)

    def publish(self, record: LogRecord) -> None:
        for cb in list(self._subscribers):
            try:
                cb(record)
            except Exception:
                # Never call the core logger from here (recursion).
                msg = "LogBus subscriber raised; suppressed.\n" + traceback.format_exc()
                with contextlib.suppress(Exception):
                    sys.stderr.write(msg)

    def clear(self) -> None:
        self._subscribers.clear()

    @contextlib.contextmanager
    def capture(self, level_name: str | None = None) -> Iterator[list[LogRecord]]:
        """Collect records published inside the block.

        Args:
            level_name: Only keep records of this level (e.g. "ERROR")
        """
        records: list[LogRecord] = []

        def _collect(rec: LogRecord) -> None:
            if level_name is None or rec.level_name == level_name:
                records.append(rec)

        self.subscribe(_collect)
        try:
            yield records
        finally:
            self.unsubscribe(_collect)


_LOG_BUS: LogBus | None = None


def get_log_bus() -> LogBus:
    global _LOG_BUS
    if _LOG_BUS is None:
        _LOG_BUS = LogBus()
    return _LOG_BUS
