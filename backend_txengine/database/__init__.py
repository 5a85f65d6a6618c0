"""
Transaction store: classified Transaction records keyed by signature.

SQLite via TransactionStore and get_transaction_store(); the backend is
swappable behind TransactionStoreBackend.
"""

from backend_txengine.database.database import (
    SQLiteBackend,
    TransactionStore,
    TransactionStoreBackend,
    get_transaction_store,
)
from backend_txengine.database.models import StoredTransactionRow

__all__ = [
    "SQLiteBackend",
    "StoredTransactionRow",
    "TransactionStore",
    "TransactionStoreBackend",
    "get_transaction_store",
]
