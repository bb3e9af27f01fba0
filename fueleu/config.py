# -*- coding: utf-8 -*-
"""
FuelEU Maritime Service Configuration

Centralized configuration for the FuelEU compliance service covering:
- Database connection defaults
- Regulatory constants (target intensity 89.3368 gCO2e/MJ, 41000 MJ/t)
- Reporting-year bounds (2000-2100)
- Pooling policy (minimum members enforced by the service layer)
- Provenance tracking (genesis hash, SHA-256 chain anchoring)
- Prometheus metrics export toggle
- REST API prefix and server bind address

All settings can be overridden via environment variables with the
``GL_FUELEU_`` prefix (e.g. ``GL_FUELEU_DATABASE_URL``,
``GL_FUELEU_MIN_POOL_MEMBERS``).

Environment Variable Reference (GL_FUELEU_ prefix):
    GL_FUELEU_DATABASE_URL              - SQLAlchemy connection URL
    GL_FUELEU_LOG_LEVEL                 - Logging level
    GL_FUELEU_TARGET_INTENSITY          - Target GHG intensity (gCO2e/MJ)
    GL_FUELEU_ENERGY_CONVERSION_FACTOR  - Energy per tonne of fuel (MJ/t)
    GL_FUELEU_MIN_YEAR                  - Earliest accepted reporting year
    GL_FUELEU_MAX_YEAR                  - Latest accepted reporting year
    GL_FUELEU_MIN_POOL_MEMBERS          - Minimum ships per pool request
    GL_FUELEU_SEED_ON_STARTUP           - Load reference routes on startup
    GL_FUELEU_ENABLE_PROVENANCE         - Enable SHA-256 provenance chain
    GL_FUELEU_GENESIS_HASH              - Genesis anchor for provenance
    GL_FUELEU_ENABLE_METRICS            - Enable Prometheus metrics export
    GL_FUELEU_POOL_SIZE                 - Database connection pool size
    GL_FUELEU_API_PREFIX                - REST API route prefix
    GL_FUELEU_HOST                      - HTTP bind host
    GL_FUELEU_PORT                      - HTTP bind port

Example:
    >>> from fueleu.config import get_config
    >>> cfg = get_config()
    >>> print(cfg.target_intensity, cfg.energy_conversion_factor)
    89.3368 41000.0

    >>> # Override for testing
    >>> from fueleu.config import FuelEUConfig, set_config, reset_config
    >>> set_config(FuelEUConfig(min_pool_members=1))
    >>> reset_config()  # teardown

Author: FuelEU Platform Team
Status: Production Ready
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Environment variable prefix
# ---------------------------------------------------------------------------

_ENV_PREFIX = "GL_FUELEU_"

_VALID_LOG_LEVELS = frozenset(
    {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
)

# ---------------------------------------------------------------------------
# Regulatory constants
# ---------------------------------------------------------------------------

#: FuelEU target GHG intensity in gCO2e/MJ.
TARGET_INTENSITY: float = 89.3368

#: Energy content per tonne of fuel in MJ.
ENERGY_CONVERSION_FACTOR: float = 41000.0

#: Inclusive bounds for a reporting year.
MIN_YEAR: int = 2000
MAX_YEAR: int = 2100


# ---------------------------------------------------------------------------
# FuelEUConfig
# ---------------------------------------------------------------------------


@dataclass
class FuelEUConfig:
    """Complete configuration for the FuelEU compliance service.

    All attributes can be overridden via environment variables using the
    ``GL_FUELEU_`` prefix (e.g. ``GL_FUELEU_MIN_POOL_MEMBERS=1``).

    Attributes:
        database_url: SQLAlchemy connection URL.
        log_level: Logging verbosity level.
        target_intensity: Regulatory GHG intensity target (gCO2e/MJ).
        energy_conversion_factor: MJ of energy per tonne of fuel.
        min_year: Earliest accepted reporting year.
        max_year: Latest accepted reporting year.
        min_pool_members: Minimum ships accepted by the service when
            forming a pool. The allocator itself accepts one.
        seed_on_startup: Load the reference routes when the service starts.
        enable_provenance: Enable SHA-256 provenance chain.
        genesis_hash: Genesis anchor string for provenance chain.
        enable_metrics: Enable Prometheus metrics export.
        pool_size: Database connection pool size.
        api_prefix: REST API route prefix.
        host: HTTP bind host for ``fueleu serve``.
        port: HTTP bind port for ``fueleu serve``.
    """

    # -- Connections ---------------------------------------------------------
    database_url: str = "sqlite:///fueleu.db"

    # -- Logging -------------------------------------------------------------
    log_level: str = "INFO"

    # -- Regulatory constants ------------------------------------------------
    target_intensity: float = TARGET_INTENSITY
    energy_conversion_factor: float = ENERGY_CONVERSION_FACTOR
    min_year: int = MIN_YEAR
    max_year: int = MAX_YEAR

    # -- Pooling policy ------------------------------------------------------
    min_pool_members: int = 2

    # -- Reference data ------------------------------------------------------
    seed_on_startup: bool = True

    # -- Provenance tracking -------------------------------------------------
    enable_provenance: bool = True
    genesis_hash: str = "GL-FUELEU-MARITIME-GENESIS"

    # -- Metrics export ------------------------------------------------------
    enable_metrics: bool = True

    # -- Performance tuning --------------------------------------------------
    pool_size: int = 5

    # -- API configuration ---------------------------------------------------
    api_prefix: str = "/api/v1/fueleu"
    host: str = "127.0.0.1"
    port: int = 3000

    # ------------------------------------------------------------------
    # Post-init validation
    # ------------------------------------------------------------------

    def __post_init__(self) -> None:
        """Validate configuration constraints after initialisation.

        Collects all validation errors before raising a single ValueError.

        Raises:
            ValueError: If any configuration value is outside its valid
                range or violates a constraint.
        """
        errors: list[str] = []

        normalised_log = self.log_level.upper()
        if normalised_log not in _VALID_LOG_LEVELS:
            errors.append(
                f"log_level must be one of {sorted(_VALID_LOG_LEVELS)}, "
                f"got '{self.log_level}'"
            )
        else:
            self.log_level = normalised_log

        if not self.database_url:
            errors.append("database_url must not be empty")

        # -- Regulatory constants --------------------------------------------
        if self.target_intensity <= 0:
            errors.append(
                f"target_intensity must be > 0, got {self.target_intensity}"
            )
        if self.energy_conversion_factor <= 0:
            errors.append(
                f"energy_conversion_factor must be > 0, "
                f"got {self.energy_conversion_factor}"
            )
        if self.min_year > self.max_year:
            errors.append(
                f"min_year ({self.min_year}) must be <= "
                f"max_year ({self.max_year})"
            )

        # -- Pooling ---------------------------------------------------------
        if self.min_pool_members < 1:
            errors.append(
                f"min_pool_members must be >= 1, "
                f"got {self.min_pool_members}"
            )

        # -- Provenance ------------------------------------------------------
        if not self.genesis_hash:
            errors.append("genesis_hash must not be empty")

        # -- Performance and API ---------------------------------------------
        if self.pool_size <= 0:
            errors.append(f"pool_size must be > 0, got {self.pool_size}")
        if self.api_prefix and not self.api_prefix.startswith("/"):
            errors.append(
                f"api_prefix must start with '/', got '{self.api_prefix}'"
            )
        if not (0 < self.port < 65536):
            errors.append(f"port must be in [1, 65535], got {self.port}")

        if errors:
            raise ValueError(
                "FuelEUConfig validation failed:\n"
                + "\n".join(f"  - {e}" for e in errors)
            )

        logger.debug(
            "FuelEUConfig validated successfully: target=%.4f, "
            "energy_factor=%.1f, years=%d-%d, min_pool=%d, "
            "provenance=%s, metrics=%s",
            self.target_intensity,
            self.energy_conversion_factor,
            self.min_year,
            self.max_year,
            self.min_pool_members,
            self.enable_provenance,
            self.enable_metrics,
        )

    # ------------------------------------------------------------------
    # Factory helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> FuelEUConfig:
        """Build a FuelEUConfig from environment variables.

        Every field can be overridden via ``GL_FUELEU_<FIELD_UPPER>``.
        Boolean values accept ``true/1/yes`` (case-insensitive).
        Malformed numeric values fall back to the class-level default
        and emit a WARNING log.

        Returns:
            Populated FuelEUConfig instance, validated via ``__post_init__``.

        Example:
            >>> import os
            >>> os.environ["GL_FUELEU_MIN_POOL_MEMBERS"] = "3"
            >>> FuelEUConfig.from_env().min_pool_members
            3
        """
        prefix = _ENV_PREFIX

        def _env(name: str, default: Any = None) -> Optional[str]:
            return os.environ.get(f"{prefix}{name}", default)

        def _bool(name: str, default: bool) -> bool:
            val = _env(name)
            if val is None:
                return default
            return val.strip().lower() in ("true", "1", "yes")

        def _int(name: str, default: int) -> int:
            val = _env(name)
            if val is None:
                return default
            try:
                return int(val.strip())
            except ValueError:
                logger.warning(
                    "Invalid integer for %s%s=%r, using default %d",
                    prefix, name, val, default,
                )
                return default

        def _float(name: str, default: float) -> float:
            val = _env(name)
            if val is None:
                return default
            try:
                return float(val.strip())
            except ValueError:
                logger.warning(
                    "Invalid float for %s%s=%r, using default %f",
                    prefix, name, val, default,
                )
                return default

        def _str(name: str, default: str) -> str:
            val = _env(name)
            if val is None:
                return default
            return val.strip()

        config = cls(
            database_url=_str("DATABASE_URL", cls.database_url),
            log_level=_str("LOG_LEVEL", cls.log_level),
            target_intensity=_float(
                "TARGET_INTENSITY", cls.target_intensity,
            ),
            energy_conversion_factor=_float(
                "ENERGY_CONVERSION_FACTOR", cls.energy_conversion_factor,
            ),
            min_year=_int("MIN_YEAR", cls.min_year),
            max_year=_int("MAX_YEAR", cls.max_year),
            min_pool_members=_int(
                "MIN_POOL_MEMBERS", cls.min_pool_members,
            ),
            seed_on_startup=_bool("SEED_ON_STARTUP", cls.seed_on_startup),
            enable_provenance=_bool(
                "ENABLE_PROVENANCE", cls.enable_provenance,
            ),
            genesis_hash=_str("GENESIS_HASH", cls.genesis_hash),
            enable_metrics=_bool("ENABLE_METRICS", cls.enable_metrics),
            pool_size=_int("POOL_SIZE", cls.pool_size),
            api_prefix=_str("API_PREFIX", cls.api_prefix),
            host=_str("HOST", cls.host),
            port=_int("PORT", cls.port),
        )

        logger.info(
            "FuelEUConfig loaded: target=%.4f, energy_factor=%.1f, "
            "years=%d-%d, min_pool=%d, seed=%s, provenance=%s, "
            "metrics=%s, prefix=%s",
            config.target_intensity,
            config.energy_conversion_factor,
            config.min_year,
            config.max_year,
            config.min_pool_members,
            config.seed_on_startup,
            config.enable_provenance,
            config.enable_metrics,
            config.api_prefix,
        )
        return config

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialise the configuration to a plain Python dictionary.

        The database URL is redacted to prevent credential leakage.

        Returns:
            Dictionary representation with sensitive fields redacted.
        """
        return {
            "database_url": "***" if self.database_url else "",
            "log_level": self.log_level,
            "target_intensity": self.target_intensity,
            "energy_conversion_factor": self.energy_conversion_factor,
            "min_year": self.min_year,
            "max_year": self.max_year,
            "min_pool_members": self.min_pool_members,
            "seed_on_startup": self.seed_on_startup,
            "enable_provenance": self.enable_provenance,
            "genesis_hash": self.genesis_hash,
            "enable_metrics": self.enable_metrics,
            "pool_size": self.pool_size,
            "api_prefix": self.api_prefix,
            "host": self.host,
            "port": self.port,
        }

    def __repr__(self) -> str:
        """Return a credential-safe representation."""
        d = self.to_dict()
        pairs = ", ".join(f"{k}={v!r}" for k, v in d.items())
        return f"FuelEUConfig({pairs})"


# ---------------------------------------------------------------------------
# Thread-safe singleton accessor
# ---------------------------------------------------------------------------

_config_instance: Optional[FuelEUConfig] = None
_config_lock = threading.Lock()


def get_config() -> FuelEUConfig:
    """Return the singleton FuelEUConfig, creating from env if needed.

    Uses double-checked locking for thread safety with minimal
    contention on the hot path.

    Returns:
        FuelEUConfig singleton instance.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = FuelEUConfig.from_env()
    return _config_instance


def set_config(config: FuelEUConfig) -> None:
    """Replace the singleton FuelEUConfig.

    Primarily intended for testing and dependency injection.

    Args:
        config: New FuelEUConfig to install as the singleton.
    """
    global _config_instance
    with _config_lock:
        _config_instance = config
    logger.info(
        "FuelEUConfig replaced programmatically: target=%.4f, "
        "min_pool=%d, provenance=%s, metrics=%s",
        config.target_intensity,
        config.min_pool_members,
        config.enable_provenance,
        config.enable_metrics,
    )


def reset_config() -> None:
    """Reset the singleton FuelEUConfig to None.

    The next call to get_config() re-reads environment variables.
    Intended for test teardown.
    """
    global _config_instance
    with _config_lock:
        _config_instance = None
    logger.debug("FuelEUConfig singleton reset")


__all__ = [
    "FuelEUConfig",
    "get_config",
    "set_config",
    "reset_config",
    "TARGET_INTENSITY",
    "ENERGY_CONVERSION_FACTOR",
    "MIN_YEAR",
    "MAX_YEAR",
]
