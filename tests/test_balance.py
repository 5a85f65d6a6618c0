"""
Tests for the balance delta extractor (native and token deltas).
"""

from __future__ import annotations

import pytest

from backend_txengine.solana_listener.parser import RawTokenBalance
from backend_txengine.transactions.balance import (
    extract_sol_delta,
    extract_sol_delta_lamports,
    extract_token_deltas,
    find_wallet_index,
    wallet_token_deltas,
)
from txbuilders import MINT, MINT_B, OTHER_WALLET, WALLET


def tb(index, mint, owner, ui, decimals=6, raw=None):
    return RawTokenBalance(
        account_index=index,
        mint=mint,
        owner=owner,
        ui_amount=ui,
        raw_amount=raw,
        decimals=decimals,
    )


def test_sol_delta_converts_lamports():
    assert extract_sol_delta([2_000_000_000, 5], [1_895_000_000, 5], 0) == pytest.approx(-0.105)
    assert extract_sol_delta_lamports([1, 10], [1, 25], 1) == 15


def test_sol_delta_out_of_range_or_missing_is_zero():
    """Short arrays, negative or missing index never raise."""
    assert extract_sol_delta([], [], 0) == 0.0
    assert extract_sol_delta([1, 2], [1], 1) == 0.0
    assert extract_sol_delta([1, 2], [1, 2], None) == 0.0
    assert extract_sol_delta_lamports([1], [2], -1) == 0


def test_find_wallet_index():
    assert find_wallet_index([OTHER_WALLET, WALLET], WALLET) == 1
    assert find_wallet_index([OTHER_WALLET], WALLET) is None
    assert find_wallet_index([], WALLET) is None


def test_token_delta_missing_side_counts_as_zero():
    changes = extract_token_deltas(
        [tb(1, MINT, WALLET, 40.0)],
        [tb(2, MINT_B, WALLET, 7.5, decimals=5)],
    )
    by_mint = {c.mint: c for c in changes}
    assert by_mint[MINT].delta == pytest.approx(-40.0)
    assert by_mint[MINT_B].delta == pytest.approx(7.5)
    assert by_mint[MINT_B].decimals == 5


def test_token_dust_is_dropped():
    changes = extract_token_deltas(
        [tb(1, MINT, WALLET, 1.0), tb(2, MINT_B, WALLET, 3.0)],
        [tb(1, MINT, WALLET, 1.0000004), tb(2, MINT_B, WALLET, 3.5)],
    )
    assert [c.mint for c in changes] == [MINT_B]


def test_token_deltas_sum_accounts_of_same_owner_and_mint():
    changes = extract_token_deltas(
        [tb(1, MINT, WALLET, 10.0), tb(2, MINT, WALLET, 5.0)],
        [tb(1, MINT, WALLET, 12.0), tb(2, MINT, WALLET, 8.0)],
    )
    assert len(changes) == 1
    assert changes[0].delta == pytest.approx(5.0)


def test_token_deltas_keyed_per_owner_and_sorted():
    changes = extract_token_deltas(
        [tb(1, MINT, WALLET, 100.0), tb(2, MINT, OTHER_WALLET, 0.0)],
        [tb(1, MINT, WALLET, 75.0), tb(2, MINT, OTHER_WALLET, 25.0)],
    )
    assert [(c.owner, c.delta) for c in changes] == sorted(
        [(OTHER_WALLET, 25.0), (WALLET, -25.0)]
    )
    assert wallet_token_deltas(changes, WALLET) == {MINT: pytest.approx(-25.0)}


def test_raw_amount_uses_lookup_then_default_decimals():
    """Entries without decimals resolve via lookup, else the 9-decimal default."""
    pre = [tb(1, MINT, WALLET, None, decimals=None, raw=0)]
    post = [tb(1, MINT, WALLET, None, decimals=None, raw=1_500_000)]

    looked_up = extract_token_deltas(pre, post, decimals_lookup=lambda mint: 6)
    assert looked_up[0].delta == pytest.approx(1.5)
    assert looked_up[0].decimals == 6

    defaulted = extract_token_deltas(pre, post, decimals_lookup=lambda mint: None)
    assert defaulted[0].delta == pytest.approx(0.0015)
    assert defaulted[0].decimals == 9


def test_empty_snapshots_give_no_changes():
    assert extract_token_deltas([], []) == []
    assert extract_token_deltas([tb(1, MINT, WALLET, None, raw=None)], []) == []
