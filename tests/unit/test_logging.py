"""Tests for centralized logging."""

from __future__ import annotations

import pytest

from assetkiln.core.errors import ConfigError
from assetkiln.core.log_bus import LogRecord, get_log_bus
from assetkiln.core.logging import (
    VerbosityLevel,
    get_logger,
    get_verbosity,
    set_verbosity,
)


class TestVerbosityLevel:
    def test_verbosity_ordering(self):
        assert VerbosityLevel.QUIET < VerbosityLevel.NORMAL
        assert VerbosityLevel.NORMAL < VerbosityLevel.VERBOSE
        assert VerbosityLevel.VERBOSE < VerbosityLevel.DEBUG

    def test_set_by_name(self):
        set_verbosity("debug")
        assert get_verbosity() == VerbosityLevel.DEBUG

        set_verbosity(" Quiet ")
        assert get_verbosity() == VerbosityLevel.QUIET

    def test_unknown_name_rejected(self):
        with pytest.raises(ConfigError):
            set_verbosity("chatty")


def test_quiet_drops_info_but_keeps_warnings(capsys) -> None:
    set_verbosity(VerbosityLevel.QUIET)
    logger = get_logger("quiet_test")

    with get_log_bus().capture() as records:
        logger.info("hidden")
        logger.verbose("hidden too")
        logger.warning("shown")
        logger.error("also shown")

    assert [r.level_name for r in records] == ["WARNING", "ERROR"]
    err = capsys.readouterr().err
    assert "[warning] shown" in err
    assert "[error] also shown" in err


def test_log_bus_receives_plain_record() -> None:
    set_verbosity(VerbosityLevel.NORMAL)
    collected: list[LogRecord] = []
    bus = get_log_bus()
    bus.subscribe(collected.append)

    get_logger("logbus_test").info("hello")

    assert collected == [
        LogRecord(level_name="INFO", plain="[info] hello", logger_name="logbus_test")
    ]


def test_failing_subscriber_does_not_break_logging(capsys) -> None:
    def _boom(_rec: LogRecord) -> None:
        raise RuntimeError("subscriber bug")

    bus = get_log_bus()
    bus.subscribe(_boom)

    get_logger("robust").info("still printed")

    out = capsys.readouterr()
    assert "[info] still printed" in out.out
    assert "suppressed" in out.err


def test_capture_filters_by_level() -> None:
    logger = get_logger("capture")
    with get_log_bus().capture("ERROR") as errors:
        logger.info("x")
        logger.error("y")
    logger.error("after")

    assert [r.plain for r in errors] == ["[error] y"]
