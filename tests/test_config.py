import json
import logging

import pytest
import structlog

from consult_store.config import StoreSettings, get_store_settings
from consult_store.observability import configure_logging


def test_defaults(monkeypatch):
    for name in (
        "CONSULT_STORE_PAGE_SIZE",
        "CONSULT_STORE_IDEMPOTENT_STATS",
        "CONSULT_STORE_LOG_LEVEL",
        "CONSULT_STORE_JSON_LOGS",
    ):
        monkeypatch.delenv(name, raising=False)
    assert get_store_settings() == StoreSettings()


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("CONSULT_STORE_PAGE_SIZE", "25")
    monkeypatch.setenv("CONSULT_STORE_IDEMPOTENT_STATS", "yes")
    monkeypatch.setenv("CONSULT_STORE_LOG_LEVEL", "debug")
    monkeypatch.setenv("CONSULT_STORE_JSON_LOGS", "0")

    settings = get_store_settings()

    assert settings.page_size == 25
    assert settings.idempotent_statistics is True
    assert settings.log_level == "DEBUG"
    assert settings.json_logs is False


def test_settings_are_cached(monkeypatch):
    monkeypatch.setenv("CONSULT_STORE_PAGE_SIZE", "4")
    first = get_store_settings()
    monkeypatch.setenv("CONSULT_STORE_PAGE_SIZE", "8")
    assert get_store_settings() is first


@pytest.mark.parametrize(
    "name, value",
    [
        ("CONSULT_STORE_PAGE_SIZE", "0"),
        ("CONSULT_STORE_IDEMPOTENT_STATS", "maybe"),
    ],
)
def test_invalid_values_are_rejected(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError):
        get_store_settings()


@pytest.fixture
def restore_structlog():
    yield
    structlog.reset_defaults()


def test_json_logging(caplog, restore_structlog):
    caplog.set_level(logging.INFO)
    configure_logging(StoreSettings(log_level="INFO", json_logs=True))

    structlog.get_logger("consult_store.test").info("store_configured", page_size=10)

    payload = json.loads(caplog.records[-1].getMessage())
    assert payload["event"] == "store_configured"
    assert payload["level"] == "info"
    assert payload["page_size"] == 10
