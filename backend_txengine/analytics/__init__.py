"""
TxEngine analytics: swap PnL conversion, statistics, filters, FIFO realized
P&L, and the fetch/classify/store pipeline.
"""

from backend_txengine.analytics.fifo import BuyLot, RealizedPnLReport, compute_fifo_realized_pnl
from backend_txengine.analytics.filters import FilterSpec, filter_swaps
from backend_txengine.analytics.swap_pnl import SwapPnLInfo, to_swap_pnl
from backend_txengine.analytics.swap_stats import (
    compute_swap_statistics,
    compute_transaction_stats,
    group_swaps,
)

__all__ = [
    "BuyLot",
    "FilterSpec",
    "RealizedPnLReport",
    "SwapPnLInfo",
    "compute_fifo_realized_pnl",
    "compute_swap_statistics",
    "compute_transaction_stats",
    "filter_swaps",
    "group_swaps",
    "to_swap_pnl",
]
