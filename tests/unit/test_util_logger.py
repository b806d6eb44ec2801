"""
Logger factory and JSON formatter.
"""

import json
import logging

from util_logger import ComponentType, JSONFormatter, LogContext, LoggerFactory


def test_context_drops_unset_fields():
    assert LogContext(engine_id="e1", stage="train").to_dict() == {"engine_id": "e1", "stage": "train"}


def test_component_logger_uses_default_level():
    logger = LoggerFactory.create_logger(ComponentType.RUNNER, "LevelCheck")
    assert logger.name == "runner.LevelCheck"
    assert logger.level == LoggerFactory.DEFAULT_LEVEL
    assert logger.propagate


def test_json_handler_added_once():
    LoggerFactory.create_logger(ComponentType.SERVICE, "Twice")
    logger = LoggerFactory.create_logger(ComponentType.SERVICE, "Twice")
    assert sum(isinstance(h.formatter, JSONFormatter) for h in logger.handlers) == 1


def test_context_logger_adds_build_dimensions(caplog):
    logger = LoggerFactory.create_with_context(
        ComponentType.JOB, "ContextCheck", engine_id="e1", build_id="b1", stage="train"
    )
    with caplog.at_level(logging.INFO, logger="job.ContextCheck"):
        logger.info("🧠 training", extra={"custom_dimensions": {"attempt": 2}})

    record = caplog.records[-1]
    payload = json.loads(JSONFormatter().format(record))
    assert payload["message"] == "🧠 training"
    assert payload["level"] == "INFO"
    assert payload["customDimensions"] == {
        "component_type": "job",
        "component_name": "ContextCheck",
        "engine_id": "e1",
        "build_id": "b1",
        "stage": "train",
        "attempt": 2,
    }


def test_exception_is_serialized(caplog):
    logger = LoggerFactory.create_logger(ComponentType.ADAPTER, "ErrorCheck")
    with caplog.at_level(logging.ERROR, logger="adapter.ErrorCheck"):
        try:
            raise ValueError("bad payload")
        except ValueError:
            logger.error("❌ failed", exc_info=True)

    payload = json.loads(JSONFormatter().format(caplog.records[-1]))
    assert payload["exception"]["type"] == "ValueError"
    assert payload["exception"]["message"] == "bad payload"
