"""
Configuration for TxEngine.

Environment (.env) resolution lives in env.py; engine thresholds and
fetch limits are exposed as a frozen Settings object from settings.py.
"""

from backend_txengine.config.env import (
    get_db_path,
    get_solana_network,
    get_solana_rpc_url,
    load_txengine_env,
)
from backend_txengine.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "get_db_path",
    "get_solana_network",
    "get_solana_rpc_url",
    "load_txengine_env",
]
