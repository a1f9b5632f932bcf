"""Tests for environment-driven settings."""

import pytest
from escrow import settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ("ESCROW_AUTO_RELEASE_DAYS", "ESCROW_DEFAULT_CURRENCY", "ESCROW_SWEEP_BATCH_SIZE"):
            monkeypatch.delenv(name, raising=False)
        assert settings.auto_release_days() == 7
        assert settings.default_currency() == "ZAR"
        assert settings.sweep_batch_size() == 100

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("ESCROW_AUTO_RELEASE_DAYS", "3")
        monkeypatch.setenv("ESCROW_DEFAULT_CURRENCY", "usd")
        assert settings.auto_release_days() == 3
        assert settings.default_currency() == "USD"

    def test_batch_size_never_below_one(self, monkeypatch):
        monkeypatch.setenv("ESCROW_SWEEP_BATCH_SIZE", "0")
        assert settings.sweep_batch_size() == 1

    @pytest.mark.parametrize("raw", ["seven", "-1"])
    def test_invalid_release_days(self, monkeypatch, raw):
        monkeypatch.setenv("ESCROW_AUTO_RELEASE_DAYS", raw)
        with pytest.raises(ValueError):
            settings.auto_release_days()
