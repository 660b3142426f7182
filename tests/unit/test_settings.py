import pytest
from pydantic import ValidationError

from radar.settings import Settings


def test_defaults_match_radar_tuning():
    settings = Settings(_env_file=None)
    assert settings.significance_threshold_km == 0.1
    assert settings.debounce_ms == 3000
    assert settings.location_timeout_ms == 15000
    assert settings.location_max_age_ms == 60000
    assert settings.watch_timeout_ms == settings.watch_max_age_ms == 30000


def test_environment_aliases(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://db/radar")
    monkeypatch.setenv("RADAR_DEBOUNCE_MS", "500")
    monkeypatch.setenv("LOG_LEVEL", " debug ")
    settings = Settings(_env_file=None)
    assert settings.postgres_url == "postgresql://db/radar"
    assert settings.debounce_ms == 500
    assert settings.obs_log_level == "DEBUG"


def test_negative_threshold_rejected(monkeypatch):
    monkeypatch.setenv("RADAR_SIGNIFICANCE_THRESHOLD_KM", "-1")
    with pytest.raises(ValidationError):
        Settings(_env_file=None)
