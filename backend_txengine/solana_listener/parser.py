"""
Solana transaction parser: raw RPC payloads to a normalized view.

Handles json and jsonParsed encodings, legacy and versioned messages
(loadedAddresses), and flattens inner instructions. Purely structural:
no classification here. Malformed pieces are skipped, never raised.
"""

from __future__ import annotations

import base64
import binascii
import math
from dataclasses import dataclass, field
from typing import Any

import base58

from backend_txengine.txengine_logging import get_logger

logger = get_logger(__name__)

# System Program (native SOL transfers)
SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"
# System Program instruction index for Transfer
SYSTEM_TRANSFER_DISCRIMINATOR = 2
# SPL mint decimals are a u8
MAX_TOKEN_DECIMALS = 255
U64_MAX = 2**64 - 1


@dataclass(frozen=True)
class RawTokenBalance:
    """One entry of meta.preTokenBalances / postTokenBalances."""

    account_index: int
    mint: str
    owner: str
    ui_amount: float | None
    """Decimals-adjusted amount; None when the node only returned base units."""
    raw_amount: int | None
    """Base units from uiTokenAmount.amount."""
    decimals: int | None
    """None when the payload did not carry decimals."""


@dataclass(frozen=True)
class ParsedInstruction:
    """
    Instruction with its program resolved.

    For jsonParsed instructions `instruction_type` and `info` come from
    `parsed`; raw instructions keep base58 `data` and resolved `accounts`.
    """

    program_id: str
    instruction_type: str = ""
    info: dict[str, Any] = field(default_factory=dict)
    accounts: tuple[str, ...] = ()
    data: str = ""
    inner: bool = False


@dataclass(frozen=True)
class TransactionView:
    """Normalized getTransaction result."""

    signature: str
    slot: int | None
    block_time: int | None
    fee_lamports: int
    success: bool
    error_message: str | None
    account_keys: tuple[str, ...]
    pre_balances: tuple[int, ...]
    post_balances: tuple[int, ...]
    pre_token_balances: tuple[RawTokenBalance, ...]
    post_token_balances: tuple[RawTokenBalance, ...]
    instructions: tuple[ParsedInstruction, ...]
    """Top-level instructions followed by inner instructions, in execution order."""
    log_messages: tuple[str, ...]

    @property
    def top_level_instructions(self) -> list[ParsedInstruction]:
        return [ix for ix in self.instructions if not ix.inner]


def _get_message_and_meta(raw: dict[str, Any]) -> tuple[dict[str, Any] | None, dict[str, Any]]:
    """Return (transaction.message, meta) from a getTransaction-style result."""
    tx_obj = raw.get("transaction")
    if not isinstance(tx_obj, dict):
        return None, {}
    message = tx_obj.get("message")
    if not isinstance(message, dict):
        return None, {}
    meta = raw.get("meta")
    return message, meta if isinstance(meta, dict) else {}


def _get_account_keys(message: dict[str, Any], meta: dict[str, Any]) -> list[str]:
    """
    Resolve accountKeys to base58 strings (handles json vs jsonParsed).
    For versioned transactions, appends meta.loadedAddresses (writable + readonly).
    """
    keys = message.get("accountKeys")
    if not isinstance(keys, list):
        return []
    out: list[str] = []
    for k in keys:
        if isinstance(k, str):
            out.append(k)
        elif isinstance(k, dict):
            out.append(str(k.get("pubkey") or ""))
    loaded = meta.get("loadedAddresses")
    # jsonParsed already lists loaded addresses inside accountKeys
    if not isinstance(loaded, dict) or (keys and isinstance(keys[0], dict)):
        return out
    for role in ("writable", "readonly"):
        for addr in _list(loaded.get(role)):
            if isinstance(addr, str):
                out.append(addr)
    return out


def _list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _int_list(values: Any) -> tuple[int, ...]:
    if not isinstance(values, list):
        return ()
    out = []
    for v in values:
        try:
            out.append(int(v))
        except (TypeError, ValueError, OverflowError):
            out.append(0)
    return tuple(out)


def _parse_token_balance(entry: Any, account_keys: list[str]) -> RawTokenBalance | None:
    if not isinstance(entry, dict):
        return None
    mint = entry.get("mint")
    idx = entry.get("accountIndex")
    if not isinstance(mint, str) or not mint or not isinstance(idx, int):
        return None
    ui = entry.get("uiTokenAmount")
    if not isinstance(ui, dict):
        ui = {}
    decimals = ui.get("decimals")
    decimals = decimals if isinstance(decimals, int) and 0 <= decimals <= MAX_TOKEN_DECIMALS else None
    ui_amount = ui.get("uiAmount")
    if ui_amount is None and ui.get("uiAmountString") is not None:
        # uiAmount is null for zero balances on some nodes
        ui_amount = ui.get("uiAmountString")
    try:
        ui_amount = float(ui_amount) if ui_amount is not None else None
    except (TypeError, ValueError, OverflowError):
        ui_amount = None
    if ui_amount is not None and not math.isfinite(ui_amount):
        ui_amount = None
    try:
        raw_amount = int(ui["amount"]) if ui.get("amount") is not None else None
    except (TypeError, ValueError, OverflowError):
        raw_amount = None
    if raw_amount is not None and not 0 <= raw_amount <= U64_MAX:
        raw_amount = None
    owner = entry.get("owner")
    if not owner:
        owner = account_keys[idx] if 0 <= idx < len(account_keys) else ""
    return RawTokenBalance(
        account_index=idx,
        mint=str(mint),
        owner=str(owner),
        ui_amount=ui_amount,
        raw_amount=raw_amount,
        decimals=decimals,
    )


def _parse_instruction(
    ix: Any,
    account_keys: list[str],
    *,
    inner: bool,
) -> ParsedInstruction | None:
    if not isinstance(ix, dict):
        return None
    program_id = ix.get("programId")
    if not program_id:
        idx = ix.get("programIdIndex")
        if not isinstance(idx, int) or not (0 <= idx < len(account_keys)):
            return None
        program_id = account_keys[idx]
    parsed = ix.get("parsed")
    instruction_type = ""
    info: dict[str, Any] = {}
    if isinstance(parsed, dict):
        instruction_type = str(parsed.get("type") or "")
        info = parsed.get("info") if isinstance(parsed.get("info"), dict) else {}
    elif isinstance(parsed, str):
        # memo and similar programs return a bare string
        instruction_type = "memo"
        info = {"memo": parsed}
    accounts: list[str] = []
    raw_accounts = ix.get("accounts")
    for a in raw_accounts if isinstance(raw_accounts, list) else []:
        if isinstance(a, str):
            accounts.append(a)
        elif isinstance(a, int) and 0 <= a < len(account_keys):
            accounts.append(account_keys[a])
    data = ix.get("data") if isinstance(ix.get("data"), str) else ""
    return ParsedInstruction(
        program_id=str(program_id),
        instruction_type=instruction_type,
        info=info,
        accounts=tuple(accounts),
        data=data,
        inner=inner,
    )


def _b58decode(s: str) -> bytes:
    """Decode instruction data; some providers return base64 instead of base58."""
    try:
        return base58.b58decode(s)
    except ValueError:
        return base64.b64decode(s, validate=True)


def decode_system_transfer_lamports(instruction: ParsedInstruction) -> int | None:
    """Lamports moved by a raw (non-parsed) System Program transfer, else None."""
    if instruction.program_id != SYSTEM_PROGRAM_ID or not instruction.data:
        return None
    try:
        raw = _b58decode(instruction.data)
    except (ValueError, binascii.Error):
        return None
    if len(raw) < 12:
        return None
    # u32 little-endian instruction index, then u64 lamports
    if int.from_bytes(raw[0:4], "little") != SYSTEM_TRANSFER_DISCRIMINATOR:
        return None
    return int.from_bytes(raw[4:12], "little")


def _error_message(err: Any) -> str | None:
    if err is None:
        return None
    if isinstance(err, str):
        return err
    if isinstance(err, dict):
        return ", ".join(f"{k}: {v}" for k, v in err.items())
    return str(err)


def parse(raw: dict[str, Any]) -> TransactionView | None:
    """
    Parse a getTransaction result into a TransactionView.

    Returns None when the payload lacks a message or account keys; every
    other missing piece (meta arrays, logs, token balances) becomes empty.
    """
    if not isinstance(raw, dict):
        return None
    message, meta = _get_message_and_meta(raw)
    if not message:
        return None
    account_keys = _get_account_keys(message, meta)
    if not account_keys:
        return None

    instructions: list[ParsedInstruction] = []
    top = message.get("instructions")
    for ix in top if isinstance(top, list) else []:
        parsed = _parse_instruction(ix, account_keys, inner=False)
        if parsed is None:
            logger.debug("parser_skip_instruction", inner=False)
            continue
        instructions.append(parsed)
    inner_blocks = meta.get("innerInstructions")
    for block in inner_blocks if isinstance(inner_blocks, list) else []:
        if not isinstance(block, dict) or not isinstance(block.get("instructions"), list):
            continue
        for ix in block["instructions"]:
            parsed = _parse_instruction(ix, account_keys, inner=True)
            if parsed is None:
                logger.debug("parser_skip_instruction", inner=True)
                continue
            instructions.append(parsed)

    pre_tb = [_parse_token_balance(e, account_keys) for e in _list(meta.get("preTokenBalances"))]
    post_tb = [_parse_token_balance(e, account_keys) for e in _list(meta.get("postTokenBalances"))]

    sigs = _list(raw["transaction"].get("signatures"))
    signature = sigs[0] if sigs and isinstance(sigs[0], str) else ""

    block_time = raw.get("blockTime")
    if block_time is not None and not isinstance(block_time, int):
        try:
            block_time = int(block_time)
        except (TypeError, ValueError, OverflowError):
            block_time = None
    slot = raw.get("slot")
    err = meta.get("err")
    if err is None and isinstance(meta.get("status"), dict):
        err = meta["status"].get("Err")
    try:
        fee = int(meta.get("fee") or 0)
    except (TypeError, ValueError, OverflowError):
        fee = 0

    return TransactionView(
        signature=signature,
        slot=slot if isinstance(slot, int) else None,
        block_time=block_time,
        fee_lamports=fee,
        success=err is None,
        error_message=_error_message(err),
        account_keys=tuple(account_keys),
        pre_balances=_int_list(meta.get("preBalances")),
        post_balances=_int_list(meta.get("postBalances")),
        pre_token_balances=tuple(tb for tb in pre_tb if tb is not None),
        post_token_balances=tuple(tb for tb in post_tb if tb is not None),
        instructions=tuple(instructions),
        log_messages=tuple(m for m in _list(meta.get("logMessages")) if isinstance(m, str)),
    )
