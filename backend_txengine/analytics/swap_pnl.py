"""
Swap PnL conversion: classified swap Transaction -> SwapPnLInfo.

Effective amounts come from the swap variant's own SOL leg, which already
excludes fee, tips and ATA rent, never from sol_balance_change. The whole
fee is charged to the swap whether or not it succeeded. Failed swaps keep
their fee and report zero effective amounts.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass
from typing import Any

from backend_txengine.tokens.models import TokenInfo
from backend_txengine.transactions.classifier import classify
from backend_txengine.transactions.types import (
    SwapSolToToken,
    SwapTokenToSol,
    SwapTokenToToken,
    Transaction,
)
from backend_txengine.txengine_logging import get_logger

logger = get_logger(__name__)

SWAP_BUY = "Buy"
SWAP_SELL = "Sell"
SWAP_FAILED_BUY = "Failed Buy"
SWAP_FAILED_SELL = "Failed Sell"

SYMBOL_PREFIX_LEN = 8


@dataclass(frozen=True)
class SwapPnLInfo:
    """Per-swap reporting view; rebuildable from Transaction + token metadata."""

    signature: str
    token_mint: str
    token_symbol: str
    swap_type: str
    sol_amount: float
    token_amount: float
    price_sol_per_token: float
    fee_sol: float
    router: str
    timestamp: int | None
    slot: int | None
    effective_sol_spent: float
    effective_sol_received: float
    ata_created_count: int = 0
    ata_closed_count: int = 0
    ata_rents: float = 0.0
    """Signed net ATA rent in SOL (recovered - spent)."""
    tip_sol: float = 0.0

    @property
    def is_buy(self) -> bool:
        return self.swap_type in (SWAP_BUY, SWAP_FAILED_BUY)

    @property
    def is_failed(self) -> bool:
        return self.swap_type.startswith("Failed")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def price_per_token(sol_amount: float, token_amount: float) -> float:
    """SOL per token; 0 when token_amount is 0 so reports never carry NaN/inf."""
    if token_amount == 0:
        return 0.0
    return sol_amount / token_amount


def _symbol(mint: str, token_cache: Mapping[str, TokenInfo]) -> str:
    info = token_cache.get(mint)
    if info is not None and info.symbol:
        return info.symbol
    logger.warning("token_symbol_fallback", mint=mint)
    return mint[:SYMBOL_PREFIX_LEN]


def to_swap_pnl(
    tx: Transaction,
    token_cache: Mapping[str, TokenInfo],
    recalc: bool = False,
) -> SwapPnLInfo | None:
    """
    Build SwapPnLInfo for a swap-family Transaction, else None.

    recalc=True reclassifies from the stored raw payload first, so a record
    saved by an older ruleset is reported with current rules.
    """
    if recalc and tx.raw_transaction_data:
        lookup = getattr(token_cache, "decimals", None)
        tx = classify(tx.raw_transaction_data, tx.wallet, decimals_lookup=lookup)

    tx_type = tx.transaction_type
    if isinstance(tx_type, SwapSolToToken):
        is_buy = True
        mint, sol_amount, token_amount = tx_type.token_mint, tx_type.sol_amount, tx_type.token_amount
    elif isinstance(tx_type, SwapTokenToSol):
        is_buy = False
        mint, sol_amount, token_amount = tx_type.token_mint, tx_type.sol_amount, tx_type.token_amount
    elif isinstance(tx_type, SwapTokenToToken):
        # reported as acquiring the output token; no SOL leg
        is_buy = True
        mint, sol_amount, token_amount = tx_type.to_mint, 0.0, tx_type.to_amount
    else:
        return None

    ata = tx.ata_analysis
    if not tx.success:
        swap_type = SWAP_FAILED_BUY if is_buy else SWAP_FAILED_SELL
        spent = received = 0.0
        created = closed = 0
        rents = 0.0
    else:
        swap_type = SWAP_BUY if is_buy else SWAP_SELL
        spent = sol_amount if is_buy else 0.0
        received = 0.0 if is_buy else sol_amount
        created = ata.total_ata_creations if ata else 0
        closed = ata.total_ata_closures if ata else 0
        rents = ata.net_rent_impact_sol if ata else 0.0

    return SwapPnLInfo(
        signature=tx.signature,
        token_mint=mint,
        token_symbol=_symbol(mint, token_cache),
        swap_type=swap_type,
        sol_amount=sol_amount,
        token_amount=token_amount,
        price_sol_per_token=price_per_token(sol_amount, token_amount),
        fee_sol=tx.fee_sol,
        router=tx_type.router,
        timestamp=tx.block_time,
        slot=tx.slot,
        effective_sol_spent=spent,
        effective_sol_received=received,
        ata_created_count=created,
        ata_closed_count=closed,
        ata_rents=rents,
        tip_sol=tx.tip_sol,
    )


def swaps_from_transactions(
    txs: list[Transaction],
    token_cache: Mapping[str, TokenInfo],
    *,
    recalc: bool = False,
) -> list[SwapPnLInfo]:
    """Convert every swap-family transaction, dropping the rest."""
    out = []
    for tx in txs:
        info = to_swap_pnl(tx, token_cache, recalc)
        if info is not None:
            out.append(info)
    return out
