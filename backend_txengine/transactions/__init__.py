"""
Transaction classification: balance deltas, pattern matching, ATA
accounting and the priority-ordered classifier.
"""

from backend_txengine.transactions.classifier import classify
from backend_txengine.transactions.types import (
    AtaAnalysis,
    AtaClose,
    Direction,
    Other,
    SolTransfer,
    SwapSolToToken,
    SwapTokenToSol,
    SwapTokenToToken,
    TokenTransfer,
    Transaction,
    TransactionType,
    Unknown,
    is_swap,
)

__all__ = [
    "classify",
    "AtaAnalysis",
    "AtaClose",
    "Direction",
    "Other",
    "SolTransfer",
    "SwapSolToToken",
    "SwapTokenToSol",
    "SwapTokenToToken",
    "TokenTransfer",
    "Transaction",
    "TransactionType",
    "Unknown",
    "is_swap",
]
