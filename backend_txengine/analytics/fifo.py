"""
FIFO realized P&L over a collected set of swaps.

Swaps are ordered by (slot, timestamp); each mint keeps its own queue of
buy lots, consumed front to back by later sells. Sells beyond the queued
quantity contribute proceeds but no cost basis. The result depends only
on the swap set, not on input order.
"""

from __future__ import annotations

from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Iterable

from backend_txengine.analytics.swap_pnl import SWAP_BUY, SWAP_SELL, SwapPnLInfo
from backend_txengine.txengine_logging import get_logger

logger = get_logger(__name__)


@dataclass
class BuyLot:
    qty: float
    remaining: float
    cost_sol: float
    fee_sol: float

    @property
    def cost_per_token(self) -> float:
        return self.cost_sol / self.qty if self.qty > 0 else 0.0


@dataclass(frozen=True)
class RealizedPnLReport:
    realized_spent: float = 0.0
    realized_received: float = 0.0
    realized_fees: float = 0.0
    realized_net: float = 0.0
    open_inventory_cost: float = 0.0
    """Cost basis of unsold lot remainders; reconciliation only."""
    unmatched_sell_qty: float = 0.0
    """Tokens sold without a queued buy lot (missing cost basis)."""
    per_mint_net: dict[str, float] = field(default_factory=dict)


def chronological_key(swap: SwapPnLInfo) -> tuple:
    """Slot first, timestamp as tie-break, signature for total order."""
    return (
        swap.slot is None,
        swap.slot or 0,
        swap.timestamp is None,
        swap.timestamp or 0,
        swap.signature,
    )


def compute_fifo_realized_pnl(swaps: Iterable[SwapPnLInfo]) -> RealizedPnLReport:
    ordered = sorted(swaps, key=chronological_key)
    lots: dict[str, deque[BuyLot]] = defaultdict(deque)
    spent = received = fees = unmatched = 0.0
    per_mint: dict[str, float] = defaultdict(float)

    for swap in ordered:
        if swap.swap_type == SWAP_BUY:
            if swap.token_amount > 0 and swap.effective_sol_spent > 0:
                lots[swap.token_mint].append(
                    BuyLot(
                        qty=swap.token_amount,
                        remaining=swap.token_amount,
                        cost_sol=swap.effective_sol_spent,
                        fee_sol=swap.fee_sol,
                    )
                )
            continue
        if swap.swap_type != SWAP_SELL:
            continue
        sell_qty = swap.token_amount
        if sell_qty <= 0 or swap.effective_sol_received <= 0:
            continue

        received += swap.effective_sol_received
        fees += swap.fee_sol
        mint_net = swap.effective_sol_received - swap.fee_sol

        queue = lots[swap.token_mint]
        while sell_qty > 0 and queue:
            lot = queue[0]
            matched = min(sell_qty, lot.remaining)
            if matched == lot.qty:
                cost, lot_fee = lot.cost_sol, lot.fee_sol
            else:
                cost = lot.cost_per_token * matched
                lot_fee = lot.fee_sol * matched / lot.qty
            spent += cost
            fees += lot_fee
            mint_net -= cost + lot_fee
            lot.remaining -= matched
            sell_qty -= matched
            if lot.remaining <= 0:
                queue.popleft()
        if sell_qty > 0:
            unmatched += sell_qty
            logger.debug(
                "fifo_sell_without_cost_basis",
                signature=swap.signature,
                mint=swap.token_mint,
                unmatched_qty=sell_qty,
            )
        per_mint[swap.token_mint] += mint_net

    open_cost = sum(
        lot.cost_per_token * lot.remaining
        for mint in sorted(lots)
        for lot in lots[mint]
    )
    return RealizedPnLReport(
        realized_spent=spent,
        realized_received=received,
        realized_fees=fees,
        realized_net=received - spent - fees,
        open_inventory_cost=open_cost,
        unmatched_sell_qty=unmatched,
        per_mint_net=dict(sorted(per_mint.items())),
    )
