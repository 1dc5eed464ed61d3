from __future__ import annotations

import logging
from datetime import date

from logging_config import ContextualFormatter, build_logging_config


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="services.aggregator",
        level=logging.DEBUG,
        pathname=__file__,
        lineno=1,
        msg="Merged reading into daily bucket",
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_appends_known_context() -> None:
    formatter = ContextualFormatter(fmt="%(message)s")

    line = formatter.format(
        _record(device_id="device1", bucket_day=date(2024, 1, 1), aggregate_count=3, unrelated="x")
    )

    assert line == (
        "Merged reading into daily bucket | device_id=device1 bucket_day=2024-01-01 aggregate_count=3"
    )


def test_formatter_without_context_leaves_message() -> None:
    formatter = ContextualFormatter(fmt="%(levelname)s %(message)s")

    assert formatter.format(_record()) == "DEBUG Merged reading into daily bucket"


def test_build_logging_config_uses_requested_level() -> None:
    config = build_logging_config("WARNING")

    assert config["root"]["level"] == "WARNING"
    assert config["handlers"]["default"]["formatter"] == "contextual"
