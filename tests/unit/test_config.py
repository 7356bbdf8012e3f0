"""Unit tests for scanguard.config."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from scanguard.config import Settings, get_settings

SECRET = "test-secret-key-that-is-at-least-32-chars-long!!"


def test_defaults() -> None:
    s = Settings(secret_key=SECRET, database_url="sqlite://")
    assert s.av_chunk_size == 1024
    assert s.av_infected_action == "keep"
    assert s.trashbin_enabled is True
    assert s.clamav_port == 3310
    assert s.scan_max_workers >= 1


def test_secret_key_is_required(monkeypatch) -> None:
    monkeypatch.delenv("SECRET_KEY", raising=False)
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_short_secret_key_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(secret_key="too-short")


def test_infected_action_must_be_delete_or_keep() -> None:
    assert Settings(secret_key=SECRET, av_infected_action="delete").av_infected_action == "delete"
    with pytest.raises(ValidationError):
        Settings(secret_key=SECRET, av_infected_action="quarantine")


def test_chunk_size_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        Settings(secret_key=SECRET, av_chunk_size=0)


def test_database_url_scheme_validated() -> None:
    with pytest.raises(ValidationError):
        Settings(secret_key=SECRET, database_url="mysql://u:p@h/db")
    assert Settings(
        secret_key=SECRET, database_url="postgresql+psycopg://u:p@h/db"
    ).database_url.startswith("postgresql")


def test_reads_environment(monkeypatch) -> None:
    monkeypatch.setenv("AV_INFECTED_ACTION", "delete")
    monkeypatch.setenv("AV_CHUNK_SIZE", "4096")
    s = Settings(secret_key=SECRET)
    assert s.av_infected_action == "delete"
    assert s.av_chunk_size == 4096


def test_get_settings_is_cached() -> None:
    get_settings.cache_clear()
    try:
        assert get_settings() is get_settings()
    finally:
        get_settings.cache_clear()
