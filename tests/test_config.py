from __future__ import annotations

import pytest

from postsmith.config import API_REQUEST, CONTENT_GENERATION, LOGIN_ATTEMPT, Settings, get_settings
from postsmith.service import build_orchestrator, make_request, request_defaults


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_settings_given_no_environment_when_loaded_then_documented_defaults_apply() -> None:
    # When
    settings = Settings()

    # Then
    assert settings.max_retries == 3
    assert settings.timeout_ms == 15000
    assert settings.max_prompt_length == 2000
    assert settings.backoff.base_ms == 1000
    assert settings.backoff.max_ms == 30000
    assert settings.rate_limits[CONTENT_GENERATION].max == 20
    assert settings.rate_limits[API_REQUEST].max == 100
    assert settings.rate_limits[LOGIN_ATTEMPT].window_ms == 900_000
    assert settings.rate_limit_db is None


def test_settings_given_prefixed_environment_when_loaded_then_nested_values_are_overridden(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    # Given
    monkeypatch.setenv("POSTSMITH_MAX_RETRIES", "5")
    monkeypatch.setenv("POSTSMITH_BACKOFF__BASE_MS", "250")
    monkeypatch.setenv("POSTSMITH_RATE_LIMITS", '{"content_generation": {"max": 2, "window_ms": 60000}}')

    # When
    settings = get_settings()

    # Then
    assert settings.max_retries == 5
    assert settings.backoff.base_ms == 250
    assert set(settings.rate_limits) == {CONTENT_GENERATION}
    assert settings.rate_limits[CONTENT_GENERATION].max == 2
    assert get_settings() is settings


def test_settings_given_dotenv_file_when_loaded_then_values_are_read(tmp_path) -> None:
    # Given
    (tmp_path / ".env").write_text("POSTSMITH_TIMEOUT_MS=4000\n", encoding="utf-8")

    # When
    settings = Settings()

    # Then
    assert settings.timeout_ms == 4000


def test_make_request_given_settings_when_built_then_defaults_come_from_settings() -> None:
    # Given
    settings = Settings(max_retries=4, timeout_ms=9000)

    # When
    request = make_request(settings, topic="coffee", platform="twitter")
    overridden = make_request(settings, topic="coffee", platform="twitter", max_retries=1)

    # Then
    assert request_defaults(settings) == {"max_retries": 4, "timeout_ms": 9000}
    assert (request.max_retries, request.timeout_ms) == (4, 9000)
    assert overridden.max_retries == 1


def test_build_orchestrator_given_sqlite_path_when_built_then_limits_persist_across_instances(tmp_path) -> None:
    # Given
    settings = Settings(
        rate_limit_db=tmp_path / "limits.db",
        rate_limits={CONTENT_GENERATION: {"max": 1, "window_ms": 60_000}},
    )

    # When
    first = build_orchestrator(settings).check_rate_limit("alice")
    second = build_orchestrator(settings).check_rate_limit("alice")

    # Then
    assert first.allowed
    assert not second.allowed
