from __future__ import annotations

import logging
import sys
from contextlib import contextmanager

import pytest
from loguru import logger

from quantsim import __version__
from quantsim.logging_utils import logging_context, setup_logging, setup_test_logging


@pytest.fixture(autouse=True)
def _reset_logging():
    setup_logging(force=True, level="INFO", stream=sys.stderr)
    yield
    setup_logging(force=True, level="INFO", stream=sys.stderr)


@contextmanager
def capture_records(level=logging.INFO):
    records = []

    class ListHandler(logging.Handler):
        def emit(self, record):
            records.append(record)

    handler = ListHandler()
    handler.setLevel(level)
    root = logging.getLogger()
    prev_level = root.level
    root.setLevel(level)
    root.addHandler(handler)
    try:
        yield records
    finally:
        root.removeHandler(handler)
        root.setLevel(prev_level)


def test_setup_logging_attaches_metadata(monkeypatch):
    monkeypatch.setenv("QUANTSIM_ENV", "staging")

    setup_logging(force=True, level="INFO", stream=sys.stderr)

    with capture_records() as records:
        logger.info("hello world")

    record = records[-1]
    assert record.getMessage() == "hello world"
    assert record.environment == "staging"
    assert record.service_version == __version__
    assert record.run_id == "-"


def test_logging_context_sets_run_id():
    with capture_records() as records:
        with logging_context(run_id="run-1"):
            logger.info("inside")
        logger.info("outside")

    inside, outside = records[-2], records[-1]
    assert inside.run_id == "run-1"
    assert outside.run_id == "-"


def test_engine_logs_carry_run_id(toy_ohlcv):
    from quantsim.backtest import run_backtest

    with capture_records() as records:
        result = run_backtest(toy_ohlcv)

    engine = [r for r in records if r.getMessage().startswith("[engine]")]
    assert engine
    assert all(r.run_id == result.id for r in engine)


def test_level_filters_records():
    setup_logging(force=True, level="WARNING", stream=sys.stderr)

    with capture_records(level=logging.DEBUG) as records:
        logger.info("quiet")
        logger.warning("loud")

    assert [r.getMessage() for r in records] == ["loud"]


def test_setup_test_logging_writes_file_sink(tmp_path):
    target = tmp_path / "logs" / "run.log"

    setup_test_logging(level="debug", file=target)
    logger.debug("[engine] to file")

    assert "[engine] to file" in target.read_text()
