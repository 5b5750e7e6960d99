from __future__ import annotations

import pytest

from account_service import config


@pytest.fixture(autouse=True)
def restore_settings():
    yield
    config.reload_settings(config.Settings())


def test_settings_read_from_environment(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "from-env")
    monkeypatch.setenv("JWT_TTL_SECONDS", "120")
    monkeypatch.setenv("STORAGE_BACKEND", "MEMORY")

    settings = config.Settings.from_env()
    assert settings.jwt_secret == "from-env"
    assert settings.jwt_ttl_seconds == 120
    assert settings.storage_backend == "memory"


def test_reload_swaps_snapshot_without_mutating_old_one(monkeypatch):
    monkeypatch.setenv("JWT_TTL_SECONDS", "60")
    before = config.reload_settings()
    assert config.get_settings() is before

    monkeypatch.setenv("JWT_TTL_SECONDS", "90")
    after = config.reload_settings()

    assert before.jwt_ttl_seconds == 60
    assert after.jwt_ttl_seconds == 90
    assert config.get_settings() is after


def test_reload_accepts_explicit_snapshot():
    snapshot = config.Settings(jwt_secret="explicit")
    assert config.reload_settings(snapshot) is snapshot
    assert config.get_settings().jwt_secret == "explicit"


def test_sighup_reload_picks_up_config_file_changes(monkeypatch, tmp_path):
    import signal

    from account_service import cli

    config_file = tmp_path / "account.env"
    config_file.write_text("JWT_TTL_SECONDS=90\n")
    monkeypatch.setenv(config.CONFIG_FILE_ENV, str(config_file))
    # registered with monkeypatch so the values loaded from the file are undone
    monkeypatch.setenv("JWT_TTL_SECONDS", "3600")
    monkeypatch.setenv("JWT_SECRET", "before-reload")

    cli._handle_sighup(signal.SIGHUP, None)
    assert config.get_settings().jwt_ttl_seconds == 90

    config_file.write_text("JWT_TTL_SECONDS=120\nJWT_SECRET=after-reload\n")
    cli._handle_sighup(signal.SIGHUP, None)
    reloaded = config.get_settings()
    assert reloaded.jwt_ttl_seconds == 120
    assert reloaded.jwt_secret == "after-reload"


def test_missing_config_file_falls_back_to_environment(monkeypatch, tmp_path):
    monkeypatch.setenv(config.CONFIG_FILE_ENV, str(tmp_path / "absent.env"))
    monkeypatch.setenv("JWT_TTL_SECONDS", "45")
    assert config.reload_settings().jwt_ttl_seconds == 45
