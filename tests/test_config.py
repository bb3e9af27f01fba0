# -*- coding: utf-8 -*-
"""Tests for FuelEU configuration."""

import dataclasses

import pytest

from fueleu.config import (
    ENERGY_CONVERSION_FACTOR,
    TARGET_INTENSITY,
    FuelEUConfig,
    get_config,
    reset_config,
    set_config,
)


class TestDefaults:
    """Regulatory constants and defaults."""

    def test_regulatory_constants(self):
        """Target and conversion factor match the regulation."""
        cfg = FuelEUConfig()

        assert cfg.target_intensity == TARGET_INTENSITY == 89.3368
        assert cfg.energy_conversion_factor == ENERGY_CONVERSION_FACTOR == 41000.0
        assert (cfg.min_year, cfg.max_year) == (2000, 2100)
        assert cfg.min_pool_members == 2
        assert cfg.api_prefix == "/api/v1/fueleu"

    def test_log_level_normalised(self):
        """Log level is upper-cased."""
        assert FuelEUConfig(log_level="debug").log_level == "DEBUG"


class TestValidation:
    """All constraint errors are reported together."""

    def test_invalid_values_collected(self):
        """Several bad values raise one ValueError listing each."""
        with pytest.raises(ValueError) as exc_info:
            FuelEUConfig(min_pool_members=0, pool_size=0, port=70000)

        message = str(exc_info.value)
        assert "min_pool_members must be >= 1" in message
        assert "pool_size must be > 0" in message
        assert "port must be in [1, 65535]" in message

    def test_year_bounds_ordered(self):
        """min_year cannot exceed max_year."""
        with pytest.raises(ValueError, match="min_year"):
            FuelEUConfig(min_year=2050, max_year=2040)

    def test_unknown_log_level(self):
        """Unknown log levels are rejected."""
        with pytest.raises(ValueError, match="log_level"):
            FuelEUConfig(log_level="LOUD")


class TestFromEnv:
    """Environment overrides with the GL_FUELEU_ prefix."""

    def test_env_overrides(self, monkeypatch):
        """Environment variables override defaults."""
        monkeypatch.setenv("GL_FUELEU_MIN_POOL_MEMBERS", "3")
        monkeypatch.setenv("GL_FUELEU_DATABASE_URL", "sqlite:///ships.db")
        monkeypatch.setenv("GL_FUELEU_ENABLE_METRICS", "false")
        monkeypatch.setenv("GL_FUELEU_TARGET_INTENSITY", "85.5")

        cfg = FuelEUConfig.from_env()

        assert cfg.min_pool_members == 3
        assert cfg.database_url == "sqlite:///ships.db"
        assert cfg.enable_metrics is False
        assert cfg.target_intensity == 85.5

    def test_malformed_number_falls_back(self, monkeypatch):
        """Unparseable numbers keep the default."""
        monkeypatch.setenv("GL_FUELEU_PORT", "not-a-port")

        assert FuelEUConfig.from_env().port == 3000


class TestSingleton:
    """get/set/reset of the process-wide config."""

    def test_set_and_reset(self, monkeypatch):
        """set_config installs, reset_config re-reads the environment."""
        custom = FuelEUConfig(min_pool_members=4)
        set_config(custom)
        assert get_config() is custom

        monkeypatch.setenv("GL_FUELEU_MIN_POOL_MEMBERS", "5")
        reset_config()
        assert get_config().min_pool_members == 5

    def test_to_dict_redacts_database_url(self):
        """Connection strings never appear in serialized config."""
        cfg = FuelEUConfig(database_url="postgresql://user:secret@db/fueleu")

        assert cfg.to_dict()["database_url"] == "***"
        assert "secret" not in repr(cfg)

    def test_to_dict_covers_every_field(self):
        """Serialized config lists exactly the declared fields."""
        cfg = FuelEUConfig()

        assert set(cfg.to_dict()) == {f.name for f in dataclasses.fields(cfg)}
        assert not hasattr(cfg, "enabled")

    def test_unknown_env_variable_ignored(self, monkeypatch):
        """A leftover master switch in the environment has no effect."""
        monkeypatch.setenv("GL_FUELEU_ENABLED", "false")

        assert FuelEUConfig.from_env() == FuelEUConfig()
