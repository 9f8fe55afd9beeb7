"""Tests for settings."""

from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from household_ledger.config import AppSettings, ClosingDayOverflow, LedgerSettings
from household_ledger.orchestrator import create_storage
from household_ledger.services.storage import InMemoryRecordStorage


class TestLedgerSettings:
    """Tests for LedgerSettings."""

    def test_defaults(self):
        settings = LedgerSettings()
        assert settings.minimum_payment_rate == Decimal("0.05")
        assert settings.minimum_payment_floor == Decimal("20")
        assert settings.closing_day_overflow == ClosingDayOverflow.REJECT
        assert settings.due_notification_days == 7
        assert settings.closing_notification_days == 3
        assert settings.usage_warning_pct == 70.0
        assert settings.usage_critical_pct == 90.0

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("LEDGER_MINIMUM_PAYMENT_RATE", "0.1")
        monkeypatch.setenv("LEDGER_CLOSING_DAY_OVERFLOW", "clamp")

        settings = LedgerSettings()

        assert settings.minimum_payment_rate == Decimal("0.1")
        assert settings.closing_day_overflow == ClosingDayOverflow.CLAMP

    def test_warning_must_be_below_critical(self):
        with pytest.raises(PydanticValidationError):
            LedgerSettings(usage_warning_pct=95.0, usage_critical_pct=90.0)

    def test_rate_bounds(self):
        with pytest.raises(PydanticValidationError):
            LedgerSettings(minimum_payment_rate=Decimal("0"))

    def test_payment_category_names_fit_category_limit(self):
        """Names longer than a category name allows are refused up front."""
        with pytest.raises(PydanticValidationError):
            LedgerSettings(payment_category_name="x" * 31)
        with pytest.raises(PydanticValidationError):
            LedgerSettings(payment_received_category_name="x" * 31)
        assert LedgerSettings(payment_category_name="x" * 30).payment_category_name == "x" * 30


class TestAppSettings:
    """Tests for AppSettings."""

    def test_storage_backend_choices(self, monkeypatch):
        monkeypatch.setenv("STORAGE_BACKEND", "google_sheets")
        assert AppSettings().storage_backend == "google_sheets"

        monkeypatch.setenv("STORAGE_BACKEND", "postgres")
        with pytest.raises(PydanticValidationError):
            AppSettings()


class TestStorageSelection:
    """Tests for create_storage."""

    def test_memory_backend(self):
        assert isinstance(create_storage("memory"), InMemoryRecordStorage)

    def test_unconfigured_sheets_falls_back_to_memory(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)

        assert isinstance(create_storage("google_sheets"), InMemoryRecordStorage)
