"""
Engine settings: classification thresholds and fetch limits.

Values come from environment variables (after .env is loaded) with
defaults matching on-chain conventions.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from backend_txengine.config.env import load_txengine_env


@dataclass(frozen=True)
class Settings:
    dust_threshold: float = 1e-6
    """Token deltas with smaller absolute UI value are dropped as rounding noise."""
    default_decimals: int = 9
    """Decimals assumed when a mint is unknown to the token collaborator."""
    fetch_workers: int = 4
    """Concurrent getTransaction requests in the pipeline."""
    request_timeout_sec: float = 30.0
    max_retries: int = 3
    retry_delay_sec: float = 2.0
    signatures_page_limit: int = 100


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def get_settings() -> Settings:
    """Build Settings from TXENGINE_* environment variables."""
    load_txengine_env()
    return Settings(
        dust_threshold=_env_float("TXENGINE_DUST_THRESHOLD", 1e-6),
        default_decimals=_env_int("TXENGINE_DEFAULT_DECIMALS", 9),
        fetch_workers=max(1, _env_int("TXENGINE_FETCH_WORKERS", 4)),
        request_timeout_sec=_env_float("TXENGINE_REQUEST_TIMEOUT", 30.0),
        max_retries=max(1, _env_int("TXENGINE_MAX_RETRIES", 3)),
        retry_delay_sec=_env_float("TXENGINE_RETRY_DELAY", 2.0),
        signatures_page_limit=_env_int("TXENGINE_SIGNATURES_LIMIT", 100),
    )
