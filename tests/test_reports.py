"""
Tests for swap filters, descriptive statistics and transaction statistics.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from backend_txengine.analytics.filters import FilterSpec, filter_swaps
from backend_txengine.analytics.swap_pnl import (
    SWAP_BUY,
    SWAP_FAILED_BUY,
    SWAP_SELL,
    SwapPnLInfo,
)
from backend_txengine.analytics.swap_stats import (
    compute_swap_statistics,
    compute_transaction_stats,
    group_swaps,
)
from backend_txengine.transactions.classifier import classify
from txbuilders import (
    BLOCK_TIME,
    MINT,
    MINT_B,
    WALLET,
    buy_payload,
    failed_sell_payload,
    sol_transfer_payload,
    unknown_program_payload,
)


def swap(sig, swap_type, sol, *, ts=BLOCK_TIME, mint=MINT, symbol="USDC", router="Raydium", fee=0.001):
    is_buy = swap_type == SWAP_BUY
    failed = swap_type.startswith("Failed")
    return SwapPnLInfo(
        signature=sig,
        token_mint=mint,
        token_symbol=symbol,
        swap_type=swap_type,
        sol_amount=sol,
        token_amount=100.0,
        price_sol_per_token=sol / 100.0,
        fee_sol=fee,
        router=router,
        timestamp=ts,
        slot=ts,
        effective_sol_spent=sol if is_buy and not failed else 0.0,
        effective_sol_received=sol if not is_buy and not failed else 0.0,
    )


# --- Filters ---


def test_filter_bounds_are_inclusive():
    swaps = [
        swap("a", SWAP_BUY, 1.0, ts=100),
        swap("b", SWAP_BUY, 2.0, ts=200),
        swap("c", SWAP_BUY, 3.0, ts=300),
    ]
    spec = FilterSpec(from_ts=100, to_ts=200, min_sol=1.0, max_sol=2.0)
    assert [s.signature for s in filter_swaps(swaps, spec)] == ["a", "b"]


def test_absent_bounds_are_unconstrained():
    swaps = [swap("a", SWAP_BUY, 1.0, ts=None), swap("b", SWAP_SELL, 50.0)]
    assert filter_swaps(swaps, FilterSpec()) == swaps


def test_date_bound_excludes_swaps_without_timestamp():
    swaps = [swap("a", SWAP_BUY, 1.0, ts=None), swap("b", SWAP_BUY, 1.0, ts=500)]
    assert [s.signature for s in filter_swaps(swaps, FilterSpec(from_ts=0))] == ["b"]


def test_mint_and_type_filters():
    swaps = [
        swap("a", SWAP_BUY, 1.0, mint=MINT),
        swap("b", SWAP_SELL, 1.0, mint=MINT_B),
        swap("c", SWAP_SELL, 1.0, mint=MINT),
    ]
    assert [s.signature for s in filter_swaps(swaps, FilterSpec(mint=MINT))] == ["a", "c"]
    spec = FilterSpec(mint=MINT, swap_type=SWAP_SELL)
    assert [s.signature for s in filter_swaps(swaps, spec)] == ["c"]


def test_filter_spec_from_dates():
    start = datetime(2023, 11, 14, tzinfo=timezone.utc)
    spec = FilterSpec.from_dates(start, None, mint=MINT)
    assert spec.from_ts == int(start.timestamp())
    assert spec.to_ts is None
    assert spec.mint == MINT


# --- Swap statistics ---


def test_swap_statistics():
    swaps = [
        swap("a", SWAP_BUY, 1.0, router="Raydium"),
        swap("b", SWAP_BUY, 3.0, mint=MINT_B, symbol="BONK", router="Jupiter"),
        swap("c", SWAP_SELL, 2.0, router="Raydium"),
        swap("d", SWAP_FAILED_BUY, 0.0, router="Raydium"),
    ]
    stats = compute_swap_statistics(swaps)

    assert stats.total_swaps == 4
    assert stats.buy_count == 2
    assert stats.sell_count == 1
    assert stats.failed_buy_count == 1
    assert stats.unique_tokens == 2
    assert stats.total_sol_spent == pytest.approx(4.0)
    assert stats.total_sol_received == pytest.approx(2.0)
    assert stats.net_sol == pytest.approx(-2.0)
    assert stats.average_swap_size == pytest.approx(2.0)
    assert stats.total_fees == pytest.approx(0.004)
    assert stats.fee_efficiency_pct == pytest.approx(0.004 / 6.0 * 100)
    assert stats.router_usage == {"Raydium": 3, "Jupiter": 1}
    assert stats.top_tokens[0] == ("BONK", 3.0)
    assert stats.swaps_by_month == {"2023-11": 4}
    assert stats.first_timestamp == stats.last_timestamp == BLOCK_TIME


def test_swap_statistics_empty():
    stats = compute_swap_statistics([])
    assert stats.total_swaps == 0
    assert stats.average_swap_size == 0.0
    assert stats.fee_efficiency_pct == 0.0


def test_group_swaps_by_router():
    groups = group_swaps(
        [
            swap("a", SWAP_BUY, 1.0, router="Raydium"),
            swap("b", SWAP_SELL, 2.0, router="Raydium"),
            swap("c", SWAP_FAILED_BUY, 0.0, router="Jupiter"),
        ],
        "router",
    )
    assert list(groups) == ["Jupiter", "Raydium"]
    assert groups["Raydium"].buys == 1
    assert groups["Raydium"].sells == 1
    assert groups["Raydium"].sol_volume == pytest.approx(3.0)
    assert groups["Jupiter"].failed == 1
    assert groups["Jupiter"].sol_volume == 0.0


def test_group_swaps_unknown_key():
    with pytest.raises(KeyError):
        group_swaps([], "color")


# --- Transaction statistics ---


def test_transaction_stats_counts_unknown_as_category():
    txs = [
        classify(buy_payload(), WALLET),
        classify(failed_sell_payload(), WALLET),
        classify(sol_transfer_payload(), WALLET),
        classify(unknown_program_payload(), WALLET),
    ]
    stats = compute_transaction_stats(txs)

    assert stats.total == 4
    assert stats.successful == 3
    assert stats.failed == 1
    assert stats.swaps == 2
    assert stats.transfers == 1
    assert stats.unknown == 1
    assert stats.success_rate == pytest.approx(75.0)
    assert stats.by_type["Unknown"] == 1
    assert stats.total_fees == pytest.approx(0.005 + 0.000005 + 0.000005 + 0.000005)
    assert stats.to_dict()["success_rate"] == pytest.approx(75.0)


def test_transaction_stats_empty():
    stats = compute_transaction_stats([])
    assert stats.success_rate == 0.0
    assert stats.first_block_time is None
