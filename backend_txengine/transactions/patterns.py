"""
Instruction and log pattern matching.

Scans top-level instructions, inner instructions and log lines of a
TransactionView and returns DetectedOperations: router programs, ATA
creations/closures, SPL and native transfers, plus hints for the Other
sub-patterns. Parsed instructions are the primary signal; balance
snapshots and log lines fill in when inner instructions are unparsed.
A malformed instruction is skipped with a debug log, never fatal.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
import base58

from backend_txengine.solana_listener.parser import (
    ParsedInstruction,
    TransactionView,
    decode_system_transfer_lamports,
)
from backend_txengine.transactions.constants import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    ATA_RENT_LAMPORTS,
    BUBBLEGUM_PROGRAM_ID,
    COMPUTE_BUDGET_PROGRAM_ID,
    JUPITER_PROGRAMS,
    MEMO_PROGRAM_ID,
    RENT_BAND_MAX_LAMPORTS,
    RENT_BAND_MIN_LAMPORTS,
    ROUTER_PROGRAMS,
    STAKE_PROGRAM_ID,
    SYSTEM_PROGRAM_ID,
    TOKEN_PROGRAM_IDS,
    WSOL_MINT,
)
from backend_txengine.transactions.types import (
    AtaOperationType,
    InstructionInfo,
    TokenTransferInfo,
)
from backend_txengine.txengine_logging import get_logger

logger = get_logger(__name__)

UNKNOWN_MINT = "Unknown"

# Raw SPL Token instruction tags
_TOKEN_IX_CLOSE_ACCOUNT = 9
_TOKEN_IX_INITIALIZE_ACCOUNT = (1, 16, 18)

_INVOKE_RE = re.compile(r"^Program (\w+) invoke \[\d+\]")
_LOG_MINT_RE = re.compile(r"mint:\s*([1-9A-HJ-NP-Za-km-z]{32,44})")

_SWAP_LOG_MARKERS = (
    "instruction: swap",
    "ray_log:",
    "instruction: buy",
    "instruction: sell",
    "instruction: route",
    "instruction: sharedaccountsroute",
)

_NON_ECONOMIC_PROGRAMS = frozenset({COMPUTE_BUDGET_PROGRAM_ID, MEMO_PROGRAM_ID})


@dataclass(frozen=True)
class DetectedAtaOp:
    """ATA lifecycle evidence; source is instruction, balance or log."""

    operation_type: AtaOperationType
    account_address: str
    token_mint: str
    rent_lamports: int
    source: str = "instruction"

    @property
    def is_wsol(self) -> bool:
        return self.token_mint == WSOL_MINT


@dataclass(frozen=True)
class NativeTransfer:
    source: str
    destination: str
    lamports: int


@dataclass
class DetectedOperations:
    """Everything the classifier and ATA accountant need, without raw JSON."""

    program_ids: list[str] = field(default_factory=list)
    router_programs: list[str] = field(default_factory=list)
    router_name: str | None = None
    ata_ops: list[DetectedAtaOp] = field(default_factory=list)
    token_transfers: list[TokenTransferInfo] = field(default_factory=list)
    native_transfers: list[NativeTransfer] = field(default_factory=list)
    instructions: list[InstructionInfo] = field(default_factory=list)
    top_level_programs: list[str] = field(default_factory=list)
    has_swap_log: bool = False
    has_buy_log: bool = False
    has_sell_log: bool = False
    has_nft_mint: bool = False
    has_stake: bool = False
    created_mints: list[str] = field(default_factory=list)
    log_mints: list[str] = field(default_factory=list)

    @property
    def has_router(self) -> bool:
        return bool(self.router_programs)

    @property
    def compute_budget_only(self) -> bool:
        return bool(self.top_level_programs) and all(
            p in _NON_ECONOMIC_PROGRAMS for p in self.top_level_programs
        ) and COMPUTE_BUDGET_PROGRAM_ID in self.top_level_programs


# -----------------------------------------------------------------------------
# Account lookups built from token balance snapshots
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class _TokenAccount:
    mint: str
    owner: str
    decimals: int | None
    pre_ui: float


def _token_accounts(view: TransactionView) -> dict[str, _TokenAccount]:
    """Token account address -> mint/owner from pre and post snapshots."""
    out: dict[str, _TokenAccount] = {}
    pre_amounts = {tb.account_index: tb.ui_amount or 0.0 for tb in view.pre_token_balances}
    for tb in (*view.pre_token_balances, *view.post_token_balances):
        if not (0 <= tb.account_index < len(view.account_keys)):
            continue
        address = view.account_keys[tb.account_index]
        if address not in out:
            out[address] = _TokenAccount(
                mint=tb.mint,
                owner=tb.owner,
                decimals=tb.decimals,
                pre_ui=pre_amounts.get(tb.account_index, 0.0),
            )
    return out


def _lamports(view: TransactionView, address: str) -> tuple[int, int] | None:
    """(pre, post) lamports of an account, or None when unknown."""
    for i, key in enumerate(view.account_keys):
        if key == address and i < len(view.pre_balances) and i < len(view.post_balances):
            return view.pre_balances[i], view.post_balances[i]
    return None


def _in_rent_band(lamports: int) -> bool:
    return RENT_BAND_MIN_LAMPORTS <= lamports <= RENT_BAND_MAX_LAMPORTS


def _creation_rent(view: TransactionView, address: str) -> int | None:
    """Rent paid into a newly created account; None when it already existed."""
    balances = _lamports(view, address)
    if balances is None:
        return ATA_RENT_LAMPORTS
    pre, post = balances
    if pre > 0:
        return None
    return post if _in_rent_band(post) else ATA_RENT_LAMPORTS


def _closure_rent(view: TransactionView, address: str, account: _TokenAccount | None) -> int:
    """Rent returned by closing an account; wrapped SOL held in it is excluded."""
    balances = _lamports(view, address)
    if balances is None:
        return ATA_RENT_LAMPORTS
    pre, _post = balances
    if account is not None and account.mint == WSOL_MINT:
        pre -= int(round(account.pre_ui * 1_000_000_000))
    return pre if _in_rent_band(pre) else ATA_RENT_LAMPORTS


# -----------------------------------------------------------------------------
# Per-instruction matchers
# -----------------------------------------------------------------------------


def _raw_tag(ix: ParsedInstruction) -> int | None:
    if not ix.data:
        return None
    try:
        raw = base58.b58decode(ix.data)
    except ValueError:
        return None
    return raw[0] if raw else None


def _match_ata_instruction(
    ix: ParsedInstruction,
    view: TransactionView,
    wallet: str,
    accounts: dict[str, _TokenAccount],
    ops: list[DetectedAtaOp],
    seen: set[tuple[AtaOperationType, str]],
    out: DetectedOperations,
) -> None:
    creation: tuple[str, str] | None = None
    closure: str | None = None
    # rent is charged to the wallet only when it funded the new account
    wallet_paid = True

    if ix.program_id == ASSOCIATED_TOKEN_PROGRAM_ID:
        if ix.instruction_type in ("create", "createIdempotent"):
            info = ix.info
            payer = info.get("source") or info.get("payer")
            if payer == wallet or info.get("wallet") == wallet:
                creation = (str(info.get("account") or ""), str(info.get("mint") or UNKNOWN_MINT))
                wallet_paid = payer == wallet
        elif not ix.instruction_type and len(ix.accounts) >= 4:
            tag = _raw_tag(ix)
            if tag in (None, 0, 1) and wallet in (ix.accounts[0], ix.accounts[2]):
                creation = (ix.accounts[1], ix.accounts[3])
                wallet_paid = ix.accounts[0] == wallet
    elif ix.program_id in TOKEN_PROGRAM_IDS:
        itype = ix.instruction_type
        if itype in ("initializeAccount", "initializeAccount2", "initializeAccount3"):
            info = ix.info
            if info.get("owner") == wallet:
                creation = (str(info.get("account") or ""), str(info.get("mint") or UNKNOWN_MINT))
        elif itype == "closeAccount":
            info = ix.info
            if wallet in (info.get("owner"), info.get("destination")):
                closure = str(info.get("account") or "")
        elif not itype and ix.accounts:
            tag = _raw_tag(ix)
            if tag == _TOKEN_IX_CLOSE_ACCOUNT:
                if wallet in ix.accounts[1:3]:
                    closure = ix.accounts[0]
            elif tag in _TOKEN_IX_INITIALIZE_ACCOUNT and len(ix.accounts) >= 2:
                account = accounts.get(ix.accounts[0])
                if account is not None and account.owner == wallet:
                    creation = (ix.accounts[0], ix.accounts[1])

    if creation is not None:
        address, mint = creation
        if (AtaOperationType.CREATION, address) in seen:
            return
        rent = _creation_rent(view, address) if address else ATA_RENT_LAMPORTS
        if rent is None:
            # createIdempotent on an existing account
            return
        seen.add((AtaOperationType.CREATION, address))
        ops.append(DetectedAtaOp(AtaOperationType.CREATION, address, mint, rent if wallet_paid else 0))
        if mint != UNKNOWN_MINT and mint != WSOL_MINT:
            out.created_mints.append(mint)
    elif closure is not None:
        if (AtaOperationType.CLOSURE, closure) in seen:
            return
        account = accounts.get(closure)
        mint = account.mint if account is not None else UNKNOWN_MINT
        seen.add((AtaOperationType.CLOSURE, closure))
        ops.append(
            DetectedAtaOp(
                AtaOperationType.CLOSURE,
                closure,
                mint,
                _closure_rent(view, closure, account),
            )
        )


def _match_token_transfer(
    ix: ParsedInstruction,
    accounts: dict[str, _TokenAccount],
) -> TokenTransferInfo | None:
    if ix.program_id not in TOKEN_PROGRAM_IDS:
        return None
    if ix.instruction_type not in ("transfer", "transferChecked"):
        return None
    info = ix.info
    source = str(info.get("source") or "")
    destination = str(info.get("destination") or "")
    src = accounts.get(source)
    dst = accounts.get(destination)
    mint = info.get("mint") or (src.mint if src else None) or (dst.mint if dst else None)
    if not mint:
        return None
    token_amount = info.get("tokenAmount")
    if isinstance(token_amount, dict) and token_amount.get("uiAmount") is not None:
        amount = float(token_amount["uiAmount"])
    else:
        raw_amount = info.get("amount")
        if raw_amount is None and isinstance(token_amount, dict):
            raw_amount = token_amount.get("amount")
        decimals = (src.decimals if src else None) or (dst.decimals if dst else None)
        if decimals is None and isinstance(token_amount, dict):
            decimals = token_amount.get("decimals")
        amount = int(raw_amount) / (10 ** int(decimals if decimals is not None else 9))
    return TokenTransferInfo(
        mint=str(mint),
        from_address=src.owner if src and src.owner else (info.get("authority") or source),
        to_address=dst.owner if dst and dst.owner else destination,
        amount=amount,
    )


def _match_native_transfer(ix: ParsedInstruction) -> NativeTransfer | None:
    if ix.program_id != SYSTEM_PROGRAM_ID:
        return None
    if ix.instruction_type in ("transfer", "transferWithSeed"):
        info = ix.info
        return NativeTransfer(
            source=str(info.get("source") or ""),
            destination=str(info.get("destination") or ""),
            lamports=int(info.get("lamports") or 0),
        )
    if not ix.instruction_type and len(ix.accounts) >= 2:
        lamports = decode_system_transfer_lamports(ix)
        if lamports is not None:
            return NativeTransfer(ix.accounts[0], ix.accounts[1], lamports)
    return None


# -----------------------------------------------------------------------------
# Fallbacks from balances and logs
# -----------------------------------------------------------------------------


def _balance_ata_ops(
    view: TransactionView,
    wallet: str,
    seen: set[tuple[AtaOperationType, str]],
) -> list[DetectedAtaOp]:
    """Wallet token accounts that appeared or vanished with a rent-sized lamport move."""
    ops: list[DetectedAtaOp] = []
    pre_idx = {tb.account_index: tb for tb in view.pre_token_balances if tb.owner == wallet}
    post_idx = {tb.account_index: tb for tb in view.post_token_balances if tb.owner == wallet}
    n = min(len(view.account_keys), len(view.pre_balances), len(view.post_balances))
    for i in sorted(set(pre_idx) | set(post_idx)):
        if i >= n:
            continue
        address = view.account_keys[i]
        pre, post = view.pre_balances[i], view.post_balances[i]
        if i in post_idx and i not in pre_idx and pre == 0 and _in_rent_band(post):
            key = (AtaOperationType.CREATION, address)
            if key not in seen:
                seen.add(key)
                ops.append(DetectedAtaOp(AtaOperationType.CREATION, address, post_idx[i].mint, post, "balance"))
        elif i in pre_idx and post == 0 and pre > 0:
            key = (AtaOperationType.CLOSURE, address)
            if key not in seen:
                tb = pre_idx[i]
                rent = pre
                if tb.mint == WSOL_MINT:
                    rent -= int(round((tb.ui_amount or 0.0) * 1_000_000_000))
                if _in_rent_band(rent):
                    seen.add(key)
                    ops.append(DetectedAtaOp(AtaOperationType.CLOSURE, address, tb.mint, rent, "balance"))
    return ops


def _log_ata_ops(view: TransactionView) -> list[DetectedAtaOp]:
    """Closures named only in logs (unparsed inner instructions)."""
    ops = []
    for line in view.log_messages:
        if line.strip() == "Program log: Instruction: CloseAccount":
            ops.append(DetectedAtaOp(AtaOperationType.CLOSURE, "", UNKNOWN_MINT, ATA_RENT_LAMPORTS, "log"))
    return ops


def _router_name(router_programs: list[str], program_ids: list[str]) -> str | None:
    if not router_programs:
        return None
    jupiter = [p for p in router_programs if p in JUPITER_PROGRAMS]
    if jupiter:
        base = ROUTER_PROGRAMS[jupiter[0]]
        venues: list[str] = []
        for pid in program_ids:
            name = ROUTER_PROGRAMS.get(pid)
            if name and pid not in JUPITER_PROGRAMS and name not in venues:
                venues.append(name)
        if venues:
            return f"{base} (via {venues[0]})"
        return base
    return ROUTER_PROGRAMS[router_programs[0]]


# -----------------------------------------------------------------------------
# Entry point
# -----------------------------------------------------------------------------


def match_patterns(view: TransactionView, wallet: str) -> DetectedOperations:
    """Collect router, ATA, transfer and Other-pattern evidence from a view."""
    out = DetectedOperations()
    accounts = _token_accounts(view)
    seen_programs: dict[str, None] = {}
    seen_ata: set[tuple[AtaOperationType, str]] = set()
    ata_ops: list[DetectedAtaOp] = []

    for ix in view.instructions:
        try:
            seen_programs.setdefault(ix.program_id, None)
            if not ix.inner:
                out.top_level_programs.append(ix.program_id)
            out.instructions.append(
                InstructionInfo(
                    program_id=ix.program_id,
                    instruction_type=ix.instruction_type or "unparsed",
                    accounts=ix.accounts,
                    inner=ix.inner,
                )
            )
            _match_ata_instruction(ix, view, wallet, accounts, ata_ops, seen_ata, out)
            transfer = _match_token_transfer(ix, accounts)
            if transfer is not None:
                out.token_transfers.append(transfer)
            native = _match_native_transfer(ix)
            if native is not None:
                out.native_transfers.append(native)
            if ix.program_id == BUBBLEGUM_PROGRAM_ID:
                out.has_nft_mint = True
            if ix.program_id == STAKE_PROGRAM_ID:
                out.has_stake = True
        except (TypeError, ValueError, KeyError, AttributeError, OverflowError) as e:
            logger.debug(
                "pattern_skip_instruction",
                signature=view.signature,
                program_id=ix.program_id,
                error=str(e),
            )

    for line in view.log_messages:
        m = _INVOKE_RE.match(line)
        if m:
            seen_programs.setdefault(m.group(1), None)
        lower = line.lower()
        if any(marker in lower for marker in _SWAP_LOG_MARKERS):
            out.has_swap_log = True
        if "instruction: buy" in lower:
            out.has_buy_log = True
        if "instruction: sell" in lower:
            out.has_sell_log = True
        if "minttocollectionv1" in lower:
            out.has_nft_mint = True
        mm = _LOG_MINT_RE.search(line)
        if mm and mm.group(1) not in out.log_mints:
            out.log_mints.append(mm.group(1))

    ata_ops.extend(_balance_ata_ops(view, wallet, seen_ata))
    inner_unparsed = not any(ix.inner for ix in view.instructions) or any(
        ix.program_id in TOKEN_PROGRAM_IDS and not ix.instruction_type for ix in view.instructions
    )
    if not ata_ops and inner_unparsed:
        ata_ops.extend(_log_ata_ops(view))
    # a failed transaction reverts every account change except the fee
    out.ata_ops = ata_ops if view.success else []

    out.program_ids = list(seen_programs)
    out.router_programs = [p for p in ROUTER_PROGRAMS if p in seen_programs]
    out.router_name = _router_name(out.router_programs, out.program_ids)
    if len(out.router_programs) > 1 and out.router_programs[0] not in JUPITER_PROGRAMS:
        logger.debug(
            "pattern_multiple_routers",
            signature=view.signature,
            routers=[ROUTER_PROGRAMS[p] for p in out.router_programs],
        )
    return out


def describe_program(program_id: str) -> str:
    """Human label for a program id, used in Other details and debug output."""
    if program_id in ROUTER_PROGRAMS:
        return ROUTER_PROGRAMS[program_id]
    labels = {
        SYSTEM_PROGRAM_ID: "System",
        COMPUTE_BUDGET_PROGRAM_ID: "ComputeBudget",
        ASSOCIATED_TOKEN_PROGRAM_ID: "AssociatedToken",
        STAKE_PROGRAM_ID: "Stake",
        BUBBLEGUM_PROGRAM_ID: "Bubblegum",
        MEMO_PROGRAM_ID: "Memo",
    }
    if program_id in TOKEN_PROGRAM_IDS:
        return "Token"
    return labels.get(program_id, program_id)
