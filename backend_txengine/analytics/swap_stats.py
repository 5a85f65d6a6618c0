"""
Descriptive statistics over classified transactions and swaps.

Order-insensitive reductions: counts and sums grouped by token, router,
swap type and month, plus transaction-level success/fee summaries.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from backend_txengine.analytics.swap_pnl import (
    SWAP_BUY,
    SWAP_FAILED_BUY,
    SWAP_FAILED_SELL,
    SWAP_SELL,
    SwapPnLInfo,
)
from backend_txengine.transactions.types import (
    AtaClose,
    Other,
    SolTransfer,
    TokenTransfer,
    Transaction,
    Unknown,
    is_swap,
)

TOP_TOKENS_LIMIT = 10


@dataclass
class GroupStats:
    count: int = 0
    buys: int = 0
    sells: int = 0
    failed: int = 0
    sol_volume: float = 0.0
    token_volume: float = 0.0
    fees: float = 0.0


@dataclass
class SwapStatistics:
    total_swaps: int = 0
    buy_count: int = 0
    sell_count: int = 0
    failed_buy_count: int = 0
    failed_sell_count: int = 0
    unique_tokens: int = 0
    total_sol_spent: float = 0.0
    total_sol_received: float = 0.0
    net_sol: float = 0.0
    average_swap_size: float = 0.0
    total_fees: float = 0.0
    fee_efficiency_pct: float = 0.0
    """Fees as a percentage of traded SOL volume."""
    total_ata_rents: float = 0.0
    first_timestamp: int | None = None
    last_timestamp: int | None = None
    top_tokens: list[tuple[str, float]] = field(default_factory=list)
    router_usage: dict[str, int] = field(default_factory=dict)
    swaps_by_month: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class TransactionStats:
    total: int = 0
    successful: int = 0
    failed: int = 0
    swaps: int = 0
    transfers: int = 0
    ata_closes: int = 0
    other: int = 0
    unknown: int = 0
    total_fees: float = 0.0
    first_block_time: int | None = None
    last_block_time: int | None = None
    by_type: dict[str, int] = field(default_factory=dict)

    @property
    def success_rate(self) -> float:
        """Percent successful; 0 for an empty set."""
        return self.successful / self.total * 100.0 if self.total else 0.0

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["success_rate"] = self.success_rate
        return out


_GROUP_KEYS: dict[str, Callable[[SwapPnLInfo], str]] = {
    "token": lambda s: s.token_symbol or s.token_mint,
    "mint": lambda s: s.token_mint,
    "router": lambda s: s.router,
    "swap_type": lambda s: s.swap_type,
}


def group_swaps(swaps: Iterable[SwapPnLInfo], key: str) -> dict[str, GroupStats]:
    """Sum counts and amounts per group; key is token, mint, router or swap_type."""
    key_fn = _GROUP_KEYS[key]
    groups: dict[str, GroupStats] = defaultdict(GroupStats)
    for s in swaps:
        g = groups[key_fn(s)]
        g.count += 1
        g.fees += s.fee_sol
        if s.is_failed:
            g.failed += 1
            continue
        if s.swap_type == SWAP_BUY:
            g.buys += 1
        elif s.swap_type == SWAP_SELL:
            g.sells += 1
        g.sol_volume += s.sol_amount
        g.token_volume += s.token_amount
    return dict(sorted(groups.items()))


def _month(ts: int) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m")


def compute_swap_statistics(swaps: Iterable[SwapPnLInfo]) -> SwapStatistics:
    swaps = list(swaps)
    stats = SwapStatistics(total_swaps=len(swaps))
    if not swaps:
        return stats

    type_counts = Counter(s.swap_type for s in swaps)
    stats.buy_count = type_counts[SWAP_BUY]
    stats.sell_count = type_counts[SWAP_SELL]
    stats.failed_buy_count = type_counts[SWAP_FAILED_BUY]
    stats.failed_sell_count = type_counts[SWAP_FAILED_SELL]
    stats.unique_tokens = len({s.token_mint for s in swaps})
    stats.total_sol_spent = sum(s.effective_sol_spent for s in swaps)
    stats.total_sol_received = sum(s.effective_sol_received for s in swaps)
    stats.net_sol = stats.total_sol_received - stats.total_sol_spent
    stats.total_fees = sum(s.fee_sol for s in swaps)
    stats.total_ata_rents = sum(s.ata_rents for s in swaps)

    volume = stats.total_sol_spent + stats.total_sol_received
    completed = stats.buy_count + stats.sell_count
    stats.average_swap_size = volume / completed if completed else 0.0
    stats.fee_efficiency_pct = stats.total_fees / volume * 100.0 if volume > 0 else 0.0

    timestamps = [s.timestamp for s in swaps if s.timestamp is not None]
    if timestamps:
        stats.first_timestamp = min(timestamps)
        stats.last_timestamp = max(timestamps)
        stats.swaps_by_month = dict(sorted(Counter(_month(t) for t in timestamps).items()))

    by_token = group_swaps(swaps, "token")
    stats.top_tokens = sorted(
        ((name, g.sol_volume) for name, g in by_token.items()),
        key=lambda item: (-item[1], item[0]),
    )[:TOP_TOKENS_LIMIT]
    stats.router_usage = dict(
        sorted(Counter(s.router for s in swaps).items(), key=lambda kv: (-kv[1], kv[0]))
    )
    return stats


def compute_transaction_stats(txs: Iterable[Transaction]) -> TransactionStats:
    stats = TransactionStats()
    by_type: Counter[str] = Counter()
    for tx in txs:
        stats.total += 1
        if tx.success:
            stats.successful += 1
        else:
            stats.failed += 1
        stats.total_fees += tx.fee_sol
        t = tx.transaction_type
        by_type[t.kind] += 1
        if is_swap(t):
            stats.swaps += 1
        elif isinstance(t, (SolTransfer, TokenTransfer)):
            stats.transfers += 1
        elif isinstance(t, AtaClose):
            stats.ata_closes += 1
        elif isinstance(t, Other):
            stats.other += 1
        elif isinstance(t, Unknown):
            stats.unknown += 1
        if tx.block_time is not None:
            if stats.first_block_time is None or tx.block_time < stats.first_block_time:
                stats.first_block_time = tx.block_time
            if stats.last_block_time is None or tx.block_time > stats.last_block_time:
                stats.last_block_time = tx.block_time
    stats.by_type = dict(sorted(by_type.items()))
    return stats
