"""
Balance delta extraction from meta pre/post snapshots.

Pure functions. Absent arrays or out-of-range indices give zero/empty
deltas; nothing here raises on malformed payloads.
"""

from __future__ import annotations

import math
from collections import defaultdict
from typing import Callable, Iterable, Sequence

from backend_txengine.solana_listener.parser import RawTokenBalance
from backend_txengine.transactions.constants import (
    DEFAULT_TOKEN_DECIMALS,
    DUST_THRESHOLD,
    LAMPORTS_PER_SOL,
)
from backend_txengine.transactions.types import TokenBalanceChange
from backend_txengine.txengine_logging import get_logger

logger = get_logger(__name__)

DecimalsLookup = Callable[[str], "int | None"]


def lamports_to_sol(lamports: int) -> float:
    return lamports / LAMPORTS_PER_SOL


def find_wallet_index(account_keys: Sequence[str], wallet: str) -> int | None:
    """Position of the wallet in the resolved account keys, or None."""
    for i, key in enumerate(account_keys):
        if key == wallet:
            return i
    return None


def extract_sol_delta_lamports(
    pre_balances: Sequence[int],
    post_balances: Sequence[int],
    wallet_index: int | None,
) -> int:
    """post[idx] - pre[idx] in lamports; 0 when either side is missing."""
    if wallet_index is None or wallet_index < 0:
        return 0
    if wallet_index >= len(pre_balances) or wallet_index >= len(post_balances):
        return 0
    return int(post_balances[wallet_index]) - int(pre_balances[wallet_index])


def extract_sol_delta(
    pre_balances: Sequence[int],
    post_balances: Sequence[int],
    wallet_index: int | None,
) -> float:
    """Signed native delta of the wallet in SOL."""
    return lamports_to_sol(extract_sol_delta_lamports(pre_balances, post_balances, wallet_index))


def _resolve_decimals(
    entry: RawTokenBalance,
    decimals_lookup: DecimalsLookup | None,
    default_decimals: int,
    warned: set[str],
) -> int:
    if entry.decimals is not None:
        return entry.decimals
    if decimals_lookup is not None:
        found = decimals_lookup(entry.mint)
        if found is not None:
            return int(found)
    if entry.mint not in warned:
        warned.add(entry.mint)
        logger.warning(
            "token_decimals_default",
            mint=entry.mint,
            default_decimals=default_decimals,
        )
    return default_decimals


def _ui_amount(entry: RawTokenBalance, decimals: int) -> float:
    if entry.ui_amount is not None:
        return entry.ui_amount
    if entry.raw_amount is not None:
        return entry.raw_amount / (10**decimals)
    return 0.0


def extract_token_deltas(
    pre_token_balances: Iterable[RawTokenBalance],
    post_token_balances: Iterable[RawTokenBalance],
    *,
    dust_threshold: float = DUST_THRESHOLD,
    decimals_lookup: DecimalsLookup | None = None,
    default_decimals: int = DEFAULT_TOKEN_DECIMALS,
) -> list[TokenBalanceChange]:
    """
    post - pre for every (mint, owner) in either snapshot, missing side = 0.

    Several token accounts of the same owner and mint are summed. Deltas
    with |delta| < dust_threshold are dropped. Output is sorted by
    (mint, owner) so repeated calls give identical lists.
    """
    pre: dict[tuple[str, str], float] = defaultdict(float)
    post: dict[tuple[str, str], float] = defaultdict(float)
    decimals_by_mint: dict[str, int] = {}
    warned: set[str] = set()

    for snapshot, target in ((pre_token_balances, pre), (post_token_balances, post)):
        for entry in snapshot:
            decimals = decimals_by_mint.get(entry.mint)
            if decimals is None or entry.decimals is not None:
                decimals = _resolve_decimals(entry, decimals_lookup, default_decimals, warned)
                decimals_by_mint[entry.mint] = decimals
            target[(entry.mint, entry.owner)] += _ui_amount(entry, decimals)

    changes: list[TokenBalanceChange] = []
    for key in sorted(set(pre) | set(post)):
        delta = post.get(key, 0.0) - pre.get(key, 0.0)
        if not math.isfinite(delta) or abs(delta) < dust_threshold:
            continue
        mint, owner = key
        changes.append(
            TokenBalanceChange(
                mint=mint,
                owner=owner,
                delta=delta,
                decimals=decimals_by_mint.get(mint, default_decimals),
            )
        )
    return changes


def wallet_token_deltas(changes: Iterable[TokenBalanceChange], wallet: str) -> dict[str, float]:
    """Per-mint delta for token accounts owned by the wallet."""
    out: dict[str, float] = {}
    for c in changes:
        if c.owner == wallet:
            out[c.mint] = out.get(c.mint, 0.0) + c.delta
    return out
