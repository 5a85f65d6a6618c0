"""
Environment variable loading for TxEngine.

- SOLANA_NETWORK: devnet | mainnet (default: mainnet)
- SOLANA_RPC_URL: RPC endpoint, wins over everything else
- HELIUS_API_KEY: used to build a Helius URL when SOLANA_RPC_URL is unset
- TXENGINE_DB_PATH: SQLite file for classified transactions
- Loads .env from the project root when present.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

_CONFIG_DIR = Path(__file__).resolve().parent
_PACKAGE_DIR = _CONFIG_DIR.parent
_ROOT = _PACKAGE_DIR.parent
_ENV_PATH = _ROOT / ".env"

DEVNET_RPC_URL = "https://api.devnet.solana.com"
MAINNET_RPC_URL = "https://api.mainnet-beta.solana.com"
HELIUS_MAINNET_URL_TEMPLATE = "https://mainnet.helius-rpc.com/?api-key={key}"
HELIUS_DEVNET_URL_TEMPLATE = "https://devnet.helius-rpc.com/?api-key={key}"

DEFAULT_DB_PATH = _ROOT / "data" / "txengine.db"

_env_loaded = False


def load_txengine_env() -> None:
    """Load .env from project root once. Existing env vars are not overridden."""
    global _env_loaded
    if _env_loaded:
        return
    if _ENV_PATH.is_file():
        load_dotenv(_ENV_PATH, override=False)
    _env_loaded = True


def get_solana_network() -> str:
    """Return 'devnet' or 'mainnet' from SOLANA_NETWORK (mainnet-beta maps to mainnet)."""
    load_txengine_env()
    raw = (os.getenv("SOLANA_NETWORK") or "mainnet").strip().lower()
    return "devnet" if raw == "devnet" else "mainnet"


def get_solana_rpc_url() -> str:
    """
    Resolve Solana RPC URL.
    Order: SOLANA_RPC_URL > HELIUS_API_KEY (network-specific) > public endpoint.
    """
    load_txengine_env()
    url = (os.getenv("SOLANA_RPC_URL") or "").strip()
    if url:
        return url
    network = get_solana_network()
    key = (os.getenv("HELIUS_API_KEY") or "").strip()
    if key:
        template = HELIUS_DEVNET_URL_TEMPLATE if network == "devnet" else HELIUS_MAINNET_URL_TEMPLATE
        return template.format(key=key)
    return DEVNET_RPC_URL if network == "devnet" else MAINNET_RPC_URL


def get_db_path() -> Path:
    """SQLite path for the transaction store (TXENGINE_DB_PATH or data/txengine.db)."""
    load_txengine_env()
    raw = (os.getenv("TXENGINE_DB_PATH") or "").strip()
    return Path(raw) if raw else DEFAULT_DB_PATH
