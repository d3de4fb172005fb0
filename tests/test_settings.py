from pathlib import Path

import pytest
from pydantic import ValidationError

from migration_tracker.core.settings import AppSettings

_ENV_VARS = (
    "API_BASE_URL",
    "AUTH_TOKEN",
    "POLL_INTERVAL_SECONDS",
    "MAX_POLL_ATTEMPTS",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_env_file_loading(tmp_path: Path, monkeypatch):
    # Create temporary .env file
    env_path = tmp_path / ".env"
    env_path.write_text(
        "API_BASE_URL=https://bridge.example \n"
        "AUTH_TOKEN=abc123\n"
        "MAX_POLL_ATTEMPTS=12\n"
        "LOG_LEVEL=DEBUG\n"
    )
    monkeypatch.chdir(tmp_path)  # change CWD so .env is discovered
    settings = AppSettings()

    assert settings.api_base_url == "https://bridge.example"
    assert settings.auth_token == "abc123"
    assert settings.max_poll_attempts == 12
    assert settings.log_level == "DEBUG"


def test_environment_overrides_env_file(tmp_path: Path, monkeypatch):
    (tmp_path / ".env").write_text("POLL_INTERVAL_SECONDS=9\n")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("POLL_INTERVAL_SECONDS", "0.5")

    assert AppSettings().poll_interval_seconds == 0.5


def test_defaults_without_env(tmp_path: Path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    settings = AppSettings()

    assert settings.poll_interval_seconds == 5.0
    assert settings.max_poll_attempts == 60
    assert settings.base_chain_id == 8453
    assert settings.submit_path == "/api/v2/bridge-aika"
    assert settings.api_base_url == "http://localhost:3000"
    assert settings.max_status_polls is None


@pytest.mark.parametrize(
    "overrides, problem",
    [
        ({"auth_token": "abc def"}, "auth_token contains whitespace"),
        ({"poll_interval_seconds": -1}, "poll_interval_seconds must be >= 0"),
        ({"max_poll_attempts": 0}, "max_poll_attempts must be >= 1"),
        ({"request_retry_attempts": 0}, "request_retry_attempts must be >= 1"),
        ({"max_status_polls": 0}, "max_status_polls must be >= 1 when set"),
    ],
)
def test_invalid_values_are_rejected(tmp_path: Path, monkeypatch, overrides, problem):
    monkeypatch.chdir(tmp_path)

    with pytest.raises(ValidationError, match=problem):
        AppSettings(**overrides)


def test_validate_all_returns_self(tmp_path: Path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    settings = AppSettings()

    assert settings.validate_all() is settings
