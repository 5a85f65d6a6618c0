"""
Transaction classifier: raw getTransaction payload + wallet -> Transaction.

Rules are evaluated top to bottom and the first match wins:

1. failed transaction with swap evidence -> zero-amount swap (fee still counts)
2. one token leg against a native leg -> SwapSolToToken / SwapTokenToSol
3. two opposite token legs, native leg only fee/rent or a small side
   payment -> SwapTokenToToken
4. SPL transfer touching the wallet, no swap pattern -> TokenTransfer
5. native transfer only -> SolTransfer
6. ATA closure recovering rent, no swap pattern -> AtaClose
7. recognised non-swap program pattern -> Other
8. Unknown

The native leg of a swap is the wallet's lamport delta with the fee, MEV
tips and net ATA rent removed, so it reflects only what went to the pool.
classify() never raises on chain data; the worst outcome is Unknown.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from backend_txengine.config.settings import Settings
from backend_txengine.solana_listener.parser import TransactionView, parse
from backend_txengine.transactions.ata import compute_ata_analysis
from backend_txengine.transactions.balance import (
    DecimalsLookup,
    extract_sol_delta_lamports,
    extract_token_deltas,
    find_wallet_index,
    lamports_to_sol,
    wallet_token_deltas,
)
from backend_txengine.transactions.constants import (
    LAMPORTS_PER_SOL,
    MAX_SWAP_SIDE_FEE_LAMPORTS,
    MEV_TIP_ACCOUNTS,
    MIN_SOL_TRANSFER,
    MIN_TOKEN_SWAP_LEG,
    UNKNOWN_ROUTER,
    WSOL_MINT,
)
from backend_txengine.transactions.patterns import (
    UNKNOWN_MINT,
    DetectedOperations,
    describe_program,
    match_patterns,
)
from backend_txengine.transactions.types import (
    AtaAnalysis,
    AtaClose,
    Direction,
    Other,
    SolTransfer,
    SwapSolToToken,
    SwapTokenToSol,
    SwapTokenToToken,
    TokenBalanceChange,
    TokenTransfer,
    Transaction,
    TransactionType,
    Unknown,
)
from backend_txengine.txengine_logging import bind_signature, get_logger

logger = get_logger(__name__)

# Native legs below this are treated as fee/rent residue, not a swap leg
NATIVE_LEG_TOLERANCE_LAMPORTS = int(MIN_SOL_TRANSFER * LAMPORTS_PER_SOL)
BULK_TRANSFER_MIN = 3
UNKNOWN_ACCOUNT = "Unknown"
SPAM_TRANSFER_MIN = 10


@dataclass(frozen=True)
class _Evidence:
    view: TransactionView
    wallet: str
    sol_delta_lamports: int
    tip_lamports: int
    ata: AtaAnalysis
    ops: DetectedOperations
    token_deltas: dict[str, float]
    """Wallet-owned non-WSOL deltas by mint, dust already removed."""
    wsol_delta: float
    changes: tuple[TokenBalanceChange, ...] = ()
    """Every (mint, owner) delta, used to name transfer counterparties."""

    @property
    def native_leg_lamports(self) -> int:
        """Signed lamports exchanged with the pool: negative spent, positive received."""
        return (
            self.sol_delta_lamports
            + self.view.fee_lamports
            + self.tip_lamports
            - self.ata.net_rent_impact
            + int(round(self.wsol_delta * LAMPORTS_PER_SOL))
        )

    @property
    def router(self) -> str:
        return self.ops.router_name or UNKNOWN_ROUTER


def _primary_mint(deltas: dict[str, float], signature: str) -> tuple[str, float]:
    """Largest absolute delta wins; ties broken by mint for determinism."""
    ranked = sorted(deltas.items(), key=lambda kv: (-abs(kv[1]), kv[0]))
    if len(ranked) > 1:
        logger.debug(
            "classifier_tie_break",
            signature=signature,
            chosen=ranked[0][0],
            candidates=[m for m, _ in ranked],
        )
    return ranked[0]


# -----------------------------------------------------------------------------
# Rules
# -----------------------------------------------------------------------------


def _rule_failed_swap(ev: _Evidence) -> TransactionType | None:
    if ev.view.success:
        return None
    ops = ev.ops
    if not (ops.has_router or ops.has_swap_log):
        return None
    mint = _failed_swap_mint(ev)
    if ops.has_sell_log and not ops.has_buy_log:
        return SwapTokenToSol(token_mint=mint, token_amount=0.0, sol_amount=0.0, router=ev.router)
    return SwapSolToToken(token_mint=mint, sol_amount=0.0, token_amount=0.0, router=ev.router)


def _failed_swap_mint(ev: _Evidence) -> str:
    if ev.ops.created_mints:
        return ev.ops.created_mints[0]
    mints = sorted(
        {
            tb.mint
            for tb in (*ev.view.pre_token_balances, *ev.view.post_token_balances)
            if tb.owner == ev.wallet and tb.mint != WSOL_MINT
        }
    )
    if mints:
        return mints[0]
    if ev.ops.log_mints:
        return ev.ops.log_mints[0]
    return UNKNOWN_MINT


def _token_legs(ev: _Evidence) -> tuple[dict[str, float], dict[str, float]]:
    decreases = {m: d for m, d in ev.token_deltas.items() if d < -MIN_TOKEN_SWAP_LEG}
    increases = {m: d for m, d in ev.token_deltas.items() if d > MIN_TOKEN_SWAP_LEG}
    return decreases, increases


def _is_token_pair_with_side_fee(ev: _Evidence) -> bool:
    """One token out, one token in, and only a small native payment alongside."""
    decreases, increases = _token_legs(ev)
    return (
        len(decreases) == 1
        and len(increases) == 1
        and abs(ev.native_leg_lamports) <= MAX_SWAP_SIDE_FEE_LAMPORTS
    )


def _rule_sol_token_swap(ev: _Evidence) -> TransactionType | None:
    if not ev.token_deltas:
        return None
    leg = ev.native_leg_lamports
    if abs(leg) < NATIVE_LEG_TOLERANCE_LAMPORTS:
        return None
    if _is_token_pair_with_side_fee(ev):
        return None
    mint, delta = _primary_mint(ev.token_deltas, ev.view.signature)
    # native decrease buys the token, native increase sells it
    if leg < 0 < delta:
        return SwapSolToToken(
            token_mint=mint,
            sol_amount=lamports_to_sol(-leg),
            token_amount=delta,
            router=ev.router,
        )
    if delta < 0 < leg:
        return SwapTokenToSol(
            token_mint=mint,
            token_amount=-delta,
            sol_amount=lamports_to_sol(leg),
            router=ev.router,
        )
    return None


def _rule_token_token_swap(ev: _Evidence) -> TransactionType | None:
    if len(ev.token_deltas) < 2:
        return None
    if abs(ev.native_leg_lamports) >= NATIVE_LEG_TOLERANCE_LAMPORTS and not _is_token_pair_with_side_fee(ev):
        return None
    decreases, increases = _token_legs(ev)
    if not decreases or not increases:
        return None
    from_mint, from_delta = _primary_mint(decreases, ev.view.signature)
    to_mint, to_delta = _primary_mint(increases, ev.view.signature)
    return SwapTokenToToken(
        from_mint=from_mint,
        to_mint=to_mint,
        from_amount=abs(from_delta),
        to_amount=to_delta,
        router=ev.router,
    )


def _rule_token_transfer(ev: _Evidence) -> TransactionType | None:
    transfers = ev.ops.token_transfers
    if len(transfers) >= SPAM_TRANSFER_MIN:
        small = sum(1 for t in transfers if t.amount < MIN_TOKEN_SWAP_LEG)
        if small * 2 > len(transfers):
            return Other(
                description="Token Spam",
                details=f"{len(transfers)} transfers, {small} below {MIN_TOKEN_SWAP_LEG}",
            )
    if ev.ops.has_router or len(ev.token_deltas) > 1:
        return None
    touching = [t for t in transfers if ev.wallet in (t.from_address, t.to_address)]
    candidates = touching or (transfers if len(transfers) == 1 else [])
    if candidates:
        best = max(candidates, key=lambda t: (t.amount, t.mint))
        return TokenTransfer(
            mint=best.mint,
            from_address=best.from_address,
            to_address=best.to_address,
            amount=best.amount,
        )
    if len(ev.token_deltas) == 1 and abs(ev.native_leg_lamports) < NATIVE_LEG_TOLERANCE_LAMPORTS:
        mint, delta = next(iter(ev.token_deltas.items()))
        counterparty = _counterparty(ev, mint, delta)
        if delta > 0:
            return TokenTransfer(mint=mint, from_address=counterparty, to_address=ev.wallet, amount=delta)
        return TokenTransfer(mint=mint, from_address=ev.wallet, to_address=counterparty, amount=-delta)
    return None


def _counterparty(ev: _Evidence, mint: str, wallet_delta: float) -> str:
    """Owner whose delta on the same mint moved the other way."""
    for change in ev.changes:
        if change.mint == mint and change.owner != ev.wallet and (change.delta > 0) != (wallet_delta > 0):
            return change.owner
    return UNKNOWN_ACCOUNT


def _rule_sol_transfer(ev: _Evidence) -> TransactionType | None:
    if ev.token_deltas:
        return None
    transfers = [
        t
        for t in ev.ops.native_transfers
        if ev.wallet in (t.source, t.destination) and t.destination not in MEV_TIP_ACCOUNTS
    ]
    if not transfers:
        return None
    outgoing = [t for t in transfers if t.source == ev.wallet]
    if len(outgoing) >= BULK_TRANSFER_MIN:
        total = sum(t.lamports for t in outgoing)
        return Other(
            description="Bulk SOL Transfer",
            details=f"{len(outgoing)} transfers, {lamports_to_sol(total):.9f} SOL",
        )
    if abs(ev.sol_delta_lamports) < NATIVE_LEG_TOLERANCE_LAMPORTS:
        return None
    best = max(transfers, key=lambda t: (t.lamports, t.destination))
    return SolTransfer(
        from_address=best.source,
        to_address=best.destination,
        amount=lamports_to_sol(best.lamports),
    )


def _rule_ata_close(ev: _Evidence) -> TransactionType | None:
    if ev.token_deltas or ev.ops.has_router:
        return None
    if ev.ata.total_ata_closures == 0 or ev.ata.total_ata_creations > 0:
        return None
    gross = ev.sol_delta_lamports + ev.view.fee_lamports
    if gross <= 0:
        return None
    recovered = ev.ata.total_rent_recovered or gross
    mint = next(
        (op.token_mint for op in ev.ata.detected_operations if op.token_mint != UNKNOWN_MINT),
        ev.ops.log_mints[0] if ev.ops.log_mints else UNKNOWN_MINT,
    )
    return AtaClose(token_mint=mint, recovered_sol=lamports_to_sol(recovered))


def _rule_other(ev: _Evidence) -> TransactionType | None:
    ops = ev.ops
    details = ", ".join(describe_program(p) for p in ops.program_ids)
    if ops.has_nft_mint:
        return Other(description="NFT Mint", details=details)
    if ops.has_stake:
        return Other(description="Stake", details=details)
    if ops.compute_budget_only:
        return Other(description="Compute Budget", details=details)
    if ev.ata.total_ata_creations > 0 and not ev.token_deltas:
        return Other(description="ATA Creation", details=details)
    if ops.has_router and ev.view.success:
        return Other(description="DEX Interaction", details=ev.router)
    return None


_RULES = (
    _rule_failed_swap,
    _rule_sol_token_swap,
    _rule_token_token_swap,
    _rule_token_transfer,
    _rule_sol_transfer,
    _rule_ata_close,
    _rule_other,
)


def _direction(tx_type: TransactionType, wallet: str) -> Direction:
    if isinstance(tx_type, SwapSolToToken):
        return Direction.INCOMING
    if isinstance(tx_type, SwapTokenToSol):
        return Direction.OUTGOING
    if isinstance(tx_type, (SolTransfer, TokenTransfer)):
        if tx_type.from_address == wallet and tx_type.to_address != wallet:
            return Direction.OUTGOING
        if tx_type.to_address == wallet and tx_type.from_address != wallet:
            return Direction.INCOMING
        return Direction.INTERNAL
    if isinstance(tx_type, AtaClose):
        return Direction.INCOMING
    return Direction.INTERNAL


# -----------------------------------------------------------------------------
# Entry point
# -----------------------------------------------------------------------------


def _raw_signature(raw: Any) -> str:
    if isinstance(raw, dict):
        sigs = (raw.get("transaction") or {}).get("signatures") if isinstance(raw.get("transaction"), dict) else None
        if isinstance(sigs, list) and sigs and isinstance(sigs[0], str):
            return sigs[0]
    return ""


def _unparseable(raw: Any, wallet: str) -> Transaction:
    meta = raw.get("meta") if isinstance(raw, dict) else None
    meta = meta if isinstance(meta, dict) else {}
    return Transaction(
        signature=_raw_signature(raw),
        wallet=wallet,
        slot=raw.get("slot") if isinstance(raw, dict) and isinstance(raw.get("slot"), int) else None,
        block_time=raw.get("blockTime") if isinstance(raw, dict) and isinstance(raw.get("blockTime"), int) else None,
        success=meta.get("err") is None,
        direction=Direction.INTERNAL,
        fee_sol=0.0,
        sol_balance_change=0.0,
        transaction_type=Unknown(),
        raw_transaction_data=raw if isinstance(raw, dict) else None,
    )


def classify(
    raw: dict[str, Any],
    wallet: str,
    *,
    decimals_lookup: DecimalsLookup | None = None,
    settings: Settings | None = None,
) -> Transaction:
    """
    Classify one getTransaction (jsonParsed) result for a wallet.

    decimals_lookup(mint) is consulted only when a token balance entry
    carries no decimals; unknown mints fall back to settings.default_decimals.
    """
    settings = settings or Settings()
    view = parse(raw)
    if view is None:
        logger.debug("classifier_unparseable_payload", signature=_raw_signature(raw))
        return _unparseable(raw, wallet)

    wallet_index = find_wallet_index(view.account_keys, wallet)
    sol_delta = extract_sol_delta_lamports(view.pre_balances, view.post_balances, wallet_index)
    changes = extract_token_deltas(
        view.pre_token_balances,
        view.post_token_balances,
        dust_threshold=settings.dust_threshold,
        decimals_lookup=decimals_lookup,
        default_decimals=settings.default_decimals,
    )
    per_mint = wallet_token_deltas(changes, wallet)
    wsol_delta = per_mint.pop(WSOL_MINT, 0.0)
    ops = match_patterns(view, wallet)
    ata = compute_ata_analysis(ops.ata_ops)
    tips = sum(
        t.lamports
        for t in ops.native_transfers
        if t.source == wallet and t.destination in MEV_TIP_ACCOUNTS
    )
    evidence = _Evidence(
        view=view,
        wallet=wallet,
        sol_delta_lamports=sol_delta,
        tip_lamports=tips,
        ata=ata,
        ops=ops,
        token_deltas=per_mint,
        wsol_delta=wsol_delta,
        changes=tuple(changes),
    )

    tx_type: TransactionType = Unknown()
    for rule in _RULES:
        result = rule(evidence)
        if result is not None:
            tx_type = result
            break
    if isinstance(tx_type, Unknown):
        bind_signature(view.signature, __name__).debug(
            "classifier_unknown",
            program_ids=ops.program_ids,
            sol_delta_lamports=sol_delta,
            token_deltas=per_mint,
        )

    return Transaction(
        signature=view.signature,
        wallet=wallet,
        slot=view.slot,
        block_time=view.block_time,
        success=view.success,
        direction=_direction(tx_type, wallet),
        fee_sol=lamports_to_sol(view.fee_lamports),
        sol_balance_change=lamports_to_sol(sol_delta),
        transaction_type=tx_type,
        token_transfers=tuple(ops.token_transfers),
        token_balance_changes=tuple(changes),
        instructions=tuple(ops.instructions),
        ata_analysis=ata,
        tip_sol=lamports_to_sol(tips),
        error_message=view.error_message,
        raw_transaction_data=raw,
    )
