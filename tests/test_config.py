"""Tests for configuration settings."""

from decimal import Decimal
from pathlib import Path
from uuid import UUID

import pytest
from pydantic import ValidationError

from investment_ledger.config import DatabaseType, Environment, Settings, get_settings


class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings(_env_file=None)

        assert settings.database_type == DatabaseType.SQLITE
        assert settings.sqlite_path == Path("investment_ledger.db")
        assert settings.long_term_threshold_days == 366
        assert settings.quantity_tolerance == Decimal("1e-9")
        assert settings.default_owner_id == UUID("00000000-0000-0000-0000-000000000001")

    def test_environment_variables_override(self, monkeypatch) -> None:
        monkeypatch.setenv("ILG_LONG_TERM_THRESHOLD_DAYS", "365")
        monkeypatch.setenv("ILG_DATABASE_TYPE", "postgres")
        monkeypatch.setenv("ILG_DATABASE_URL", "postgresql://u:p@db/ledger")

        settings = Settings(_env_file=None)

        assert settings.long_term_threshold_days == 365
        assert settings.database_type == DatabaseType.POSTGRES
        assert settings.database_url == "postgresql://u:p@db/ledger"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"long_term_threshold_days": 0},
            {"quantity_tolerance": Decimal("-1")},
            {"quantity_tolerance": Decimal("1e-8")},
        ],
    )
    def test_rejects_invalid_accounting_settings(self, overrides) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **overrides)

    @pytest.mark.parametrize(
        ("environment", "expected"),
        [(Environment.PRODUCTION, "json"), (Environment.DEVELOPMENT, "console")],
    )
    def test_log_format_follows_environment(self, environment, expected) -> None:
        settings = Settings(environment=environment, _env_file=None)

        assert settings.log_format == expected

    def test_explicit_log_format_wins(self) -> None:
        settings = Settings(
            environment=Environment.PRODUCTION, log_format="console", _env_file=None
        )

        assert settings.log_format == "console"

    def test_get_settings_is_cached(self) -> None:
        get_settings.cache_clear()

        assert get_settings() is get_settings()
