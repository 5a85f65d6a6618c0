"""
Tests for environment-driven configuration (RPC URL, DB path, engine settings).
"""

from __future__ import annotations

from pathlib import Path

import pytest

from backend_txengine.config import env
from backend_txengine.config.settings import Settings, get_settings

_VARS = (
    "SOLANA_RPC_URL",
    "HELIUS_API_KEY",
    "SOLANA_NETWORK",
    "TXENGINE_DB_PATH",
    "TXENGINE_DUST_THRESHOLD",
    "TXENGINE_DEFAULT_DECIMALS",
    "TXENGINE_FETCH_WORKERS",
    "TXENGINE_MAX_RETRIES",
    "TXENGINE_RETRY_DELAY",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


def test_explicit_rpc_url_wins(monkeypatch):
    monkeypatch.setenv("SOLANA_RPC_URL", " https://rpc.example/ ")
    monkeypatch.setenv("HELIUS_API_KEY", "k")
    assert env.get_solana_rpc_url() == "https://rpc.example/"


def test_helius_url_per_network(monkeypatch):
    monkeypatch.setenv("HELIUS_API_KEY", "abc")
    assert env.get_solana_rpc_url() == "https://mainnet.helius-rpc.com/?api-key=abc"
    monkeypatch.setenv("SOLANA_NETWORK", "devnet")
    assert env.get_solana_rpc_url() == "https://devnet.helius-rpc.com/?api-key=abc"


def test_public_endpoint_fallback(monkeypatch):
    assert env.get_solana_rpc_url() == env.MAINNET_RPC_URL
    monkeypatch.setenv("SOLANA_NETWORK", "DEVNET")
    assert env.get_solana_rpc_url() == env.DEVNET_RPC_URL
    monkeypatch.setenv("SOLANA_NETWORK", "mainnet-beta")
    assert env.get_solana_network() == "mainnet"


def test_db_path(monkeypatch, tmp_path):
    assert env.get_db_path() == env.DEFAULT_DB_PATH
    monkeypatch.setenv("TXENGINE_DB_PATH", str(tmp_path / "x.db"))
    assert env.get_db_path() == Path(tmp_path / "x.db")


def test_settings_defaults():
    assert get_settings() == Settings()


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("TXENGINE_DUST_THRESHOLD", "0.001")
    monkeypatch.setenv("TXENGINE_DEFAULT_DECIMALS", "6")
    monkeypatch.setenv("TXENGINE_FETCH_WORKERS", "0")
    monkeypatch.setenv("TXENGINE_RETRY_DELAY", "0.5")
    s = get_settings()
    assert s.dust_threshold == 0.001
    assert s.default_decimals == 6
    assert s.fetch_workers == 1
    assert s.retry_delay_sec == 0.5


def test_invalid_values_fall_back(monkeypatch):
    monkeypatch.setenv("TXENGINE_DUST_THRESHOLD", "lots")
    monkeypatch.setenv("TXENGINE_MAX_RETRIES", "3.5")
    s = get_settings()
    assert s.dust_threshold == 1e-6
    assert s.max_retries == 3
