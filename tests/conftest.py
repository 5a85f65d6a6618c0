"""
Pytest fixtures for TxEngine tests. Uses a temporary SQLite DB for the transaction store.
"""

from __future__ import annotations

import pytest

from txbuilders import MINT, MINT_B


@pytest.fixture
def store(tmp_path, monkeypatch):
    """
    TransactionStore on a temporary SQLite file with schema ensured.
    TXENGINE_DB_PATH is pointed at the same file so default-path callers agree.
    """
    db_path = tmp_path / "txengine.db"
    monkeypatch.setenv("TXENGINE_DB_PATH", str(db_path))

    from backend_txengine.database.database import get_transaction_store

    return get_transaction_store(db_path)


@pytest.fixture
def token_cache():
    """TokenCache that knows MINT as USDC; every other mint is a miss."""
    from backend_txengine.tokens import TokenCache, TokenInfo

    known = {
        MINT: TokenInfo(mint=MINT, symbol="USDC", name="USD Coin", decimals=6),
        MINT_B: TokenInfo(mint=MINT_B, symbol="BONK", name="Bonk", decimals=5),
    }
    return TokenCache(lookup_token=known.get)
