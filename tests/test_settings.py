"""Tests for settings loading."""

import pytest
from pydantic import ValidationError

from charity.platform.settings import Environment, Settings, get_settings, reset_settings

pytestmark = pytest.mark.unit


def test_defaults():
    s = Settings(_env_file=None)

    assert s.tickets.service_minutes_per_position == 5
    assert s.tickets.expiry_grace_days == 1
    assert s.tickets.ticket_number_prefix == "LDH"
    assert s.api.prefix == "/api/v1"
    assert s.api.actor_header == "X-Actor-ID"


def test_nested_environment_override(monkeypatch):
    monkeypatch.setenv("TICKETS__SERVICE_MINUTES_PER_POSITION", "7")
    monkeypatch.setenv("TICKETS__TIMEZONE", "Europe/London")
    monkeypatch.setenv("NOTIFICATIONS__ENABLED", "false")

    s = Settings(_env_file=None)

    assert s.tickets.service_minutes_per_position == 7
    assert s.tickets.timezone == "Europe/London"
    assert s.notifications.enabled is False


def test_unknown_timezone_is_rejected(monkeypatch):
    monkeypatch.setenv("TICKETS__TIMEZONE", "Mars/Olympus_Mons")
    with pytest.raises(ValidationError, match="Unknown timezone"):
        Settings(_env_file=None)


def test_environment_is_case_insensitive(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "Production")
    s = Settings(_env_file=None)
    assert s.environment is Environment.PRODUCTION
    assert s.is_production


def test_get_settings_is_cached():
    reset_settings()
    try:
        assert get_settings() is get_settings()
    finally:
        reset_settings()
