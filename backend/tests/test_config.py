"""
Test suite for environment configuration loading and validation.
"""

import pytest
import logging
import os
from unittest.mock import patch

from rich.logging import RichHandler

from helitour.models import CommitMode
from helitour.utils.config import BookingSettings, get_config, load_config, reset_config, setup_logging


@pytest.fixture(autouse=True)
def fresh_config():
    reset_config()
    yield
    reset_config()


class TestBookingSettings:

    def test_defaults(self):
        settings = BookingSettings()

        assert settings.database_url is None
        assert settings.commit_mode == CommitMode.ATOMIC
        assert settings.booking_reference_prefix == "HT"
        assert settings.ledger_max_retries == 10
        assert settings.low_availability_ratio == 0.25

    def test_log_level_normalised(self):
        assert BookingSettings(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(ValueError):
            BookingSettings(log_level="LOUD")

    def test_reference_prefix(self):
        assert BookingSettings(booking_reference_prefix="heli").booking_reference_prefix == "HELI"
        with pytest.raises(ValueError):
            BookingSettings(booking_reference_prefix="H-T")

    @pytest.mark.parametrize("field, value", [
        ("valkey_port", 0),
        ("ledger_max_retries", 0),
        ("low_availability_ratio", 1.5),
        ("hold_lock_timeout_seconds", 0),
    ])
    def test_out_of_range_values(self, field, value):
        with pytest.raises(ValueError):
            BookingSettings(**{field: value})


class TestLoadConfig:

    @patch.dict(os.environ, {
        "DATABASE_URL": "sqlite:///:memory:",
        "COMMIT_MODE": "COMPENSATING",
        "LEDGER_MAX_RETRIES": "3",
        "DEBUG": "yes",
        "HOLD_LOCK_TIMEOUT_SECONDS": "1.5",
    })
    def test_reads_environment(self, tmp_path):
        settings = load_config(env_file=str(tmp_path / "missing.env"))

        assert settings.database_url == "sqlite:///:memory:"
        assert settings.commit_mode == CommitMode.COMPENSATING
        assert settings.ledger_max_retries == 3
        assert settings.debug is True
        assert settings.hold_lock_timeout_seconds == 1.5

    def test_reads_env_file(self, tmp_path, monkeypatch):
        # Registered so the value load_dotenv writes is removed afterwards
        monkeypatch.setenv("BOOKING_REFERENCE_PREFIX", "HT")
        monkeypatch.delenv("BOOKING_REFERENCE_PREFIX")
        env_file = tmp_path / ".env"
        env_file.write_text("BOOKING_REFERENCE_PREFIX=SKY\n")

        settings = load_config(env_file=str(env_file))

        assert settings.booking_reference_prefix == "SKY"

    @patch.dict(os.environ, {"COMMIT_MODE": "eventually"})
    def test_invalid_environment(self, tmp_path):
        with pytest.raises(ValueError, match="Configuration validation failed"):
            load_config(env_file=str(tmp_path / "missing.env"))

    def test_get_config_is_cached(self):
        assert get_config() is get_config()


def test_setup_logging_installs_rich_handler():
    setup_logging("warning")

    root = logging.getLogger()
    assert root.level == logging.WARNING
    assert any(isinstance(handler, RichHandler) for handler in root.handlers)
