"""
Row models for the transaction store.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class StoredTransactionRow:
    """Index columns of a stored record; the full record lives in record_json."""

    signature: str
    wallet: str
    kind: str
    slot: int | None
    block_time: int | None
    success: bool
    updated_at: int
