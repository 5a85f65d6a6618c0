"""
Application-level exceptions.

Only boundary components raise these (RPC fetch, storage, CLI input).
The classifier and analytics never raise on chain data; missing evidence
degrades to TransactionType Unknown instead.
"""

from __future__ import annotations


class TxEngineError(Exception):
    """Base error with a stable machine-readable code."""

    code = "txengine_error"

    def __init__(self, message: str, *, signature: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.signature = signature

    def __str__(self) -> str:
        if self.signature:
            return f"{self.message} (signature={self.signature})"
        return self.message


class TransactionFetchError(TxEngineError):
    """Transaction unavailable: transport failure, RPC error, or unusable payload."""

    code = "transaction_fetch_failed"


class StorageError(TxEngineError):
    """Persisting or loading a transaction record failed."""

    code = "storage_failed"


class InvalidWalletError(TxEngineError, ValueError):
    """Wallet string is not a base58-encoded 32-byte public key."""

    code = "invalid_wallet"
