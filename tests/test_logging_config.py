"""
Tests for the logging setup used by the console entry point.
"""

import pytest

from application_import.core import logging_config


@pytest.fixture
def captured_configs(monkeypatch):
    configs = []
    monkeypatch.setattr(logging_config, "dictConfig", configs.append)
    monkeypatch.setattr(logging_config, "_is_configured", False)
    return configs


def test_handler_writes_to_stderr():
    config = logging_config.build_logging_config("DEBUG")
    handler = config["handlers"]["stderr"]
    assert handler["stream"] == "ext://sys.stderr"
    assert handler["level"] == "DEBUG"
    assert config["root"] == {"handlers": ["stderr"], "level": "DEBUG"}
    assert config["loggers"]["application_import"] == {"level": "DEBUG"}
    assert config["disable_existing_loggers"] is False


def test_configure_runs_once(captured_configs):
    logging_config.configure_logging("warning")
    logging_config.configure_logging("debug")
    assert len(captured_configs) == 1
    assert captured_configs[0]["root"]["level"] == "WARNING"


def test_force_reconfigures(captured_configs):
    logging_config.configure_logging("info")
    logging_config.configure_logging("debug", force=True)
    assert [config["root"]["level"] for config in captured_configs] == ["INFO", "DEBUG"]


def test_unknown_level_falls_back_to_info(captured_configs):
    logging_config.configure_logging("chatty")
    assert captured_configs[0]["root"]["level"] == "INFO"
