"""
Typed records produced by the classifier.

Transaction is the canonical per-signature record. TransactionType is a
closed union of frozen variant dataclasses, each tagged with a `kind`
string used for serialization and reporting. Records are immutable:
re-analysis builds a new Transaction that replaces the stored one.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, ClassVar, Union

from backend_txengine.transactions.constants import LAMPORTS_PER_SOL

RECORD_VERSION = 2


class Direction(str, Enum):
    """Net economic direction relative to the analysed wallet."""

    INCOMING = "Incoming"
    OUTGOING = "Outgoing"
    INTERNAL = "Internal"


class AtaOperationType(str, Enum):
    CREATION = "Creation"
    CLOSURE = "Closure"


# -----------------------------------------------------------------------------
# TransactionType variants
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class SwapSolToToken:
    kind: ClassVar[str] = "SwapSolToToken"
    token_mint: str
    sol_amount: float
    token_amount: float
    router: str


@dataclass(frozen=True)
class SwapTokenToSol:
    kind: ClassVar[str] = "SwapTokenToSol"
    token_mint: str
    token_amount: float
    sol_amount: float
    router: str


@dataclass(frozen=True)
class SwapTokenToToken:
    kind: ClassVar[str] = "SwapTokenToToken"
    from_mint: str
    to_mint: str
    from_amount: float
    to_amount: float
    router: str


@dataclass(frozen=True)
class SolTransfer:
    kind: ClassVar[str] = "SolTransfer"
    from_address: str
    to_address: str
    amount: float


@dataclass(frozen=True)
class TokenTransfer:
    kind: ClassVar[str] = "TokenTransfer"
    mint: str
    from_address: str
    to_address: str
    amount: float


@dataclass(frozen=True)
class AtaClose:
    kind: ClassVar[str] = "AtaClose"
    token_mint: str
    recovered_sol: float


@dataclass(frozen=True)
class Other:
    kind: ClassVar[str] = "Other"
    description: str
    details: str = ""


@dataclass(frozen=True)
class Unknown:
    kind: ClassVar[str] = "Unknown"


TransactionType = Union[
    SwapSolToToken,
    SwapTokenToSol,
    SwapTokenToToken,
    SolTransfer,
    TokenTransfer,
    AtaClose,
    Other,
    Unknown,
]

SWAP_TYPES = (SwapSolToToken, SwapTokenToSol, SwapTokenToToken)

_VARIANTS: dict[str, type] = {
    cls.kind: cls
    for cls in (
        SwapSolToToken,
        SwapTokenToSol,
        SwapTokenToToken,
        SolTransfer,
        TokenTransfer,
        AtaClose,
        Other,
        Unknown,
    )
}


def is_swap(tx_type: TransactionType) -> bool:
    return isinstance(tx_type, SWAP_TYPES)


def transaction_type_to_dict(tx_type: TransactionType) -> dict[str, Any]:
    out = asdict(tx_type)
    out["kind"] = tx_type.kind
    return out


def transaction_type_from_dict(data: dict[str, Any] | None) -> TransactionType:
    """Rebuild a variant from its dict form; unrecognised kinds become Unknown."""
    if not data:
        return Unknown()
    fields_ = dict(data)
    cls = _VARIANTS.get(fields_.pop("kind", ""), Unknown)
    if cls is Unknown:
        return Unknown()
    try:
        return cls(**fields_)
    except TypeError:
        return Unknown()


# -----------------------------------------------------------------------------
# Balance, transfer and instruction records
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class TokenTransferInfo:
    """SPL transfer observed in instructions; amount in UI units."""

    mint: str
    from_address: str
    to_address: str
    amount: float


@dataclass(frozen=True)
class TokenBalanceChange:
    """Signed UI-amount delta for one (mint, owner) pair."""

    mint: str
    owner: str
    delta: float
    decimals: int = 9


@dataclass(frozen=True)
class InstructionInfo:
    program_id: str
    instruction_type: str
    accounts: tuple[str, ...] = ()
    inner: bool = False


# -----------------------------------------------------------------------------
# ATA accounting
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class AtaOperation:
    operation_type: AtaOperationType
    account_address: str
    token_mint: str
    is_wsol: bool
    rent_amount: int
    """Rent in lamports."""

    @property
    def rent_sol(self) -> float:
        return self.rent_amount / LAMPORTS_PER_SOL


@dataclass(frozen=True)
class AtaAnalysis:
    """
    ATA creation/closure counts and rent flow for one transaction.

    Rent fields are integer lamports so that
    net_rent_impact == total_rent_recovered - total_rent_spent holds exactly.
    Use the *_sol properties for reporting.
    """

    total_ata_creations: int = 0
    total_ata_closures: int = 0
    token_ata_creations: int = 0
    token_ata_closures: int = 0
    wsol_ata_creations: int = 0
    wsol_ata_closures: int = 0
    total_rent_spent: int = 0
    total_rent_recovered: int = 0
    net_rent_impact: int = 0
    token_rent_spent: int = 0
    token_rent_recovered: int = 0
    token_net_rent_impact: int = 0
    wsol_rent_spent: int = 0
    wsol_rent_recovered: int = 0
    wsol_net_rent_impact: int = 0
    detected_operations: tuple[AtaOperation, ...] = ()

    @property
    def total_rent_spent_sol(self) -> float:
        return self.total_rent_spent / LAMPORTS_PER_SOL

    @property
    def total_rent_recovered_sol(self) -> float:
        return self.total_rent_recovered / LAMPORTS_PER_SOL

    @property
    def net_rent_impact_sol(self) -> float:
        return self.net_rent_impact / LAMPORTS_PER_SOL

    @property
    def token_net_rent_impact_sol(self) -> float:
        return self.token_net_rent_impact / LAMPORTS_PER_SOL

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["detected_operations"] = [
            {**asdict(op), "operation_type": op.operation_type.value}
            for op in self.detected_operations
        ]
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AtaAnalysis":
        ops = tuple(
            AtaOperation(
                operation_type=AtaOperationType(op["operation_type"]),
                account_address=op.get("account_address", ""),
                token_mint=op.get("token_mint", ""),
                is_wsol=bool(op.get("is_wsol")),
                rent_amount=int(op.get("rent_amount", 0)),
            )
            for op in data.get("detected_operations") or []
        )
        counts = {k: int(v) for k, v in data.items() if k != "detected_operations"}
        return cls(**counts, detected_operations=ops)


# -----------------------------------------------------------------------------
# Transaction
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class Transaction:
    """
    Classified transaction for one wallet.

    transaction_type is derived only from sol_balance_change,
    token_balance_changes, token_transfers and instructions.
    raw_transaction_data is kept for debugging and reanalysis.
    """

    signature: str
    wallet: str
    slot: int | None
    block_time: int | None
    success: bool
    direction: Direction
    fee_sol: float
    sol_balance_change: float
    transaction_type: TransactionType
    token_transfers: tuple[TokenTransferInfo, ...] = ()
    token_balance_changes: tuple[TokenBalanceChange, ...] = ()
    instructions: tuple[InstructionInfo, ...] = ()
    ata_analysis: AtaAnalysis | None = None
    tip_sol: float = 0.0
    error_message: str | None = None
    raw_transaction_data: dict[str, Any] | None = field(default=None, compare=False, repr=False)

    @property
    def program_ids(self) -> list[str]:
        """Distinct invoked program ids in first-seen order."""
        seen: dict[str, None] = {}
        for ix in self.instructions:
            seen.setdefault(ix.program_id, None)
        return list(seen)

    def to_dict(self, *, include_raw: bool = True) -> dict[str, Any]:
        """JSON-serializable form; stable across versions via record_version."""
        return {
            "record_version": RECORD_VERSION,
            "signature": self.signature,
            "wallet": self.wallet,
            "slot": self.slot,
            "block_time": self.block_time,
            "success": self.success,
            "direction": self.direction.value,
            "fee_sol": self.fee_sol,
            "sol_balance_change": self.sol_balance_change,
            "transaction_type": transaction_type_to_dict(self.transaction_type),
            "token_transfers": [asdict(t) for t in self.token_transfers],
            "token_balance_changes": [asdict(c) for c in self.token_balance_changes],
            "instructions": [
                {**asdict(ix), "accounts": list(ix.accounts)} for ix in self.instructions
            ],
            "ata_analysis": self.ata_analysis.to_dict() if self.ata_analysis else None,
            "tip_sol": self.tip_sol,
            "error_message": self.error_message,
            "raw_transaction_data": self.raw_transaction_data if include_raw else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Transaction":
        ata = data.get("ata_analysis")
        return cls(
            signature=data["signature"],
            wallet=data.get("wallet", ""),
            slot=data.get("slot"),
            block_time=data.get("block_time"),
            success=bool(data.get("success", True)),
            direction=Direction(data.get("direction", Direction.INTERNAL.value)),
            fee_sol=float(data.get("fee_sol", 0.0)),
            sol_balance_change=float(data.get("sol_balance_change", 0.0)),
            transaction_type=transaction_type_from_dict(data.get("transaction_type")),
            token_transfers=tuple(
                TokenTransferInfo(**t) for t in data.get("token_transfers") or []
            ),
            token_balance_changes=tuple(
                TokenBalanceChange(**c) for c in data.get("token_balance_changes") or []
            ),
            instructions=tuple(
                InstructionInfo(
                    program_id=ix["program_id"],
                    instruction_type=ix.get("instruction_type", ""),
                    accounts=tuple(ix.get("accounts") or ()),
                    inner=bool(ix.get("inner", False)),
                )
                for ix in data.get("instructions") or []
            ),
            ata_analysis=AtaAnalysis.from_dict(ata) if ata else None,
            tip_sol=float(data.get("tip_sol", 0.0)),
            error_message=data.get("error_message"),
            raw_transaction_data=data.get("raw_transaction_data"),
        )
