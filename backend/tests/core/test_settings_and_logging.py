"""Settings and structured logging.

Tests:
    - postgresql:// URLs are rewritten for the asyncpg driver
    - Environment variables override defaults
    - JSONFormatter emits one JSON object with known extra fields
"""

import json
import logging

from loan_service.config import Settings
from loan_service.infrastructure.observability import JSONFormatter


def test_postgres_url_uses_asyncpg_driver():
    settings = Settings(database_url="postgresql://u:p@db:5432/loans")
    assert settings.database_url == "postgresql+asyncpg://u:p@db:5432/loans"


def test_sqlite_url_left_alone():
    settings = Settings(database_url="sqlite+aiosqlite:///:memory:")
    assert settings.database_url == "sqlite+aiosqlite:///:memory:"


def test_environment_overrides_defaults(monkeypatch):
    monkeypatch.setenv("AGREEMENTS_BASE_URL", "https://files.test/agreements")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    settings = Settings()
    assert settings.agreements_base_url == "https://files.test/agreements"
    assert settings.log_level == "DEBUG"


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        "loan_service.test", logging.WARNING, __file__, 1, "loan %s rejected", ("abc",), None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_extras():
    line = JSONFormatter().format(_record(loan_id="abc", error_code="LIMIT_EXCEEDED"))
    payload = json.loads(line)
    assert payload["level"] == "WARNING"
    assert payload["logger"] == "loan_service.test"
    assert payload["message"] == "loan abc rejected"
    assert payload["loan_id"] == "abc"
    assert payload["error_code"] == "LIMIT_EXCEEDED"
    assert "investor_id" not in payload


def test_json_formatter_ignores_unknown_extras():
    payload = json.loads(JSONFormatter().format(_record(secret="x")))
    assert "secret" not in payload
