import pytest
from pydantic import ValidationError

from studiobook.core.config import PoolConfig, Settings


def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.db_max_connections == 5
    assert settings.db_pool_timeout_seconds == 30.0
    assert settings.db_busy_timeout_ms == 5000
    assert settings.hydration_chunk_size == 900
    assert settings.audit_hook_timeout_seconds == 1.0


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("DB_MAX_CONNECTIONS", "8")
    monkeypatch.setenv("DATABASE_PATH", "/var/lib/studio/bookings.db")
    monkeypatch.setenv("LOG_LEVEL", " debug ")

    settings = Settings(_env_file=None)

    assert settings.db_max_connections == 8
    assert str(settings.resolved_database_path()) == "/var/lib/studio/bookings.db"
    assert settings.log_level == "DEBUG"


def test_relative_database_path_is_anchored():
    settings = Settings(_env_file=None, database_path="data/test.db")

    assert settings.resolved_database_path().is_absolute()
    assert settings.resolved_database_path().parts[-2:] == ("data", "test.db")


@pytest.mark.parametrize(
    "overrides",
    [{"studio_timezone": "Mars/Olympus"}, {"hydration_chunk_size": 1000}, {"db_max_connections": 0}],
)
def test_invalid_values_are_rejected(overrides):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **overrides)


def test_pool_config_from_settings():
    config = PoolConfig.from_settings(Settings(_env_file=None, db_max_connections=2, db_pool_timeout_seconds=1.5))

    assert config == PoolConfig(max_connections=2, timeout=1.5, busy_timeout_ms=5000, poll_interval=0.1)
