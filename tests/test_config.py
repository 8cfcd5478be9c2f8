"""Tests for centralized Settings, credential validation, and get_settings cache.

Covers: defaults, env-override, the derived retry policy and worst-case
outbound time, the production credential gate, and lru_cache behavior.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from responder.config import Settings, get_settings, validate_credentials

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> None:
    """Clear get_settings lru_cache before each test."""
    get_settings.cache_clear()


def _complete(**overrides: object) -> Settings:
    values: dict[str, object] = {
        "webhook_secret": "whsec",
        "anthropic_api_key": "sk-ant-test",
        "sendgrid_api_key": "SG.test",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)  # type: ignore[call-arg, arg-type]


# ---------------------------------------------------------------------------
# Settings defaults
# ---------------------------------------------------------------------------


class TestSettingsDefaults:
    """Verify that Settings fields have the expected default values."""

    def test_settings_defaults(self) -> None:
        s = Settings(_env_file=None)  # type: ignore[call-arg]

        assert s.production is False
        assert s.webhook_port == 8000
        assert s.database_path == Path("data/responder.db")
        assert s.signature_tolerance_seconds == 600
        assert s.dedupe_backend == "sqlite"
        assert s.dedupe_window_seconds == 600
        assert s.retry_max_attempts == 3

    def test_settings_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PRODUCTION", "true")
        monkeypatch.setenv("WEBHOOK_PORT", "9090")
        monkeypatch.setenv("SENDGRID_API_KEY", "SG.from-env")
        monkeypatch.setenv("SIGNATURE_ENCODING", "base64")

        s = Settings(_env_file=None)  # type: ignore[call-arg]

        assert s.production is True
        assert s.webhook_port == 9090
        assert s.sendgrid_api_key.get_secret_value() == "SG.from-env"
        assert s.signature_encoding == "base64"

    def test_secrets_not_in_repr(self) -> None:
        assert "sk-ant-test" not in repr(_complete())


# ---------------------------------------------------------------------------
# Derived values
# ---------------------------------------------------------------------------


class TestDerivedValues:
    """retry_policy and worst_case_outbound_seconds."""

    def test_retry_policy(self) -> None:
        policy = _complete(retry_max_attempts=5, retryable_status_codes=[429]).retry_policy()

        assert policy.max_attempts == 5
        assert policy.base_delay == 1.0
        assert policy.retryable_status_codes == frozenset({429})

    def test_worst_case_defaults_fit_budget(self) -> None:
        s = _complete()
        # completion: 3 x 25s + 1s + 2s; each send: 3 x 10s + 1s + 2s
        assert s.worst_case_outbound_seconds() == pytest.approx(78.0 + 2 * 33.0)
        assert s.worst_case_outbound_seconds() < s.request_budget_seconds

    def test_single_attempt_has_no_backoff(self) -> None:
        s = _complete(retry_max_attempts=1)
        assert s.worst_case_outbound_seconds() == pytest.approx(25.0 + 2 * 10.0)


# ---------------------------------------------------------------------------
# Credential validation
# ---------------------------------------------------------------------------


class TestValidateCredentials:
    """Verify validate_credentials behaviour in production and dev modes."""

    def test_production_missing_exits(self, capsys: pytest.CaptureFixture[str]) -> None:
        settings = _complete(production=True, anthropic_api_key="")

        with pytest.raises(SystemExit) as exc_info:
            validate_credentials(settings)

        assert exc_info.value.code == 1
        assert "ANTHROPIC_API_KEY" in capsys.readouterr().err

    def test_production_redis_without_url_exits(self) -> None:
        settings = _complete(production=True, dedupe_backend="redis")

        with pytest.raises(SystemExit):
            validate_credentials(settings)

    def test_production_complete_passes(self) -> None:
        validate_credentials(_complete(production=True))

    def test_dev_mode_missing_does_not_exit(self) -> None:
        validate_credentials(Settings(_env_file=None, production=False))  # type: ignore[call-arg]

    def test_budget_overrun_does_not_exit(self) -> None:
        validate_credentials(_complete(production=True, request_budget_seconds=10.0))


# ---------------------------------------------------------------------------
# get_settings cache
# ---------------------------------------------------------------------------


class TestGetSettings:
    def test_get_settings_cached(self) -> None:
        assert get_settings() is get_settings()
