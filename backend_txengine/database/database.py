"""
Persistence for classified transactions.

The store is an idempotent cache keyed by (signature, wallet). A record is
wallet-relative, so one signature classified for two wallets is two rows;
storing the same pair again replaces the previous record. Records are
serialized with Transaction.to_dict(); the raw payload is kept in its own
column so a record can be reclassified later. Every sqlite3 or JSON failure
surfaces as StorageError.
"""

from __future__ import annotations

import json
import sqlite3
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from backend_txengine.config.env import get_db_path
from backend_txengine.core.exceptions import StorageError
from backend_txengine.database.models import StoredTransactionRow
from backend_txengine.transactions.types import Transaction
from backend_txengine.txengine_logging import get_logger

logger = get_logger(__name__)

# -----------------------------------------------------------------------------
# Schema (SQLite)
# -----------------------------------------------------------------------------

SCHEMA_TRANSACTIONS = """
CREATE TABLE IF NOT EXISTS transactions (
    signature TEXT NOT NULL,
    wallet TEXT NOT NULL,
    kind TEXT NOT NULL,
    slot INTEGER,
    block_time INTEGER,
    success INTEGER NOT NULL,
    record_json TEXT NOT NULL,
    raw_json TEXT,
    updated_at INTEGER NOT NULL,
    PRIMARY KEY (signature, wallet)
);
CREATE INDEX IF NOT EXISTS ix_transactions_signature ON transactions(signature);
CREATE INDEX IF NOT EXISTS ix_transactions_wallet_slot ON transactions(wallet, slot);
CREATE INDEX IF NOT EXISTS ix_transactions_kind ON transactions(kind);
"""

_COLUMNS = "signature, wallet, kind, slot, block_time, success, record_json, raw_json, updated_at"


# -----------------------------------------------------------------------------
# Abstract backend
# -----------------------------------------------------------------------------


class TransactionStoreBackend(ABC):
    """Abstract persistence interface."""

    @abstractmethod
    def ensure_schema(self) -> None:
        ...

    @abstractmethod
    def upsert(self, row: StoredTransactionRow, record_json: str, raw_json: str | None) -> None:
        """Insert or replace the record for (row.signature, row.wallet)."""
        ...

    @abstractmethod
    def get_record_json(self, signature: str, wallet: str | None = None) -> tuple[str, str | None] | None:
        """
        (record_json, raw_json) for a signature, or None.

        Without a wallet the most recently updated record for the signature is returned.
        """
        ...

    @abstractmethod
    def list_signatures(self, wallet: str | None = None) -> set[str]:
        ...

    @abstractmethod
    def list_rows(self, wallet: str, *, limit: int = 1000, kind: str | None = None) -> list[StoredTransactionRow]:
        """Rows for a wallet, newest slot first."""
        ...

    @abstractmethod
    def delete(self, signature: str, wallet: str | None = None) -> bool:
        ...


# -----------------------------------------------------------------------------
# SQLite backend
# -----------------------------------------------------------------------------


class SQLiteBackend(TransactionStoreBackend):
    """SQLite implementation; one connection per operation."""

    def __init__(self, path: str | Path, *, timeout_sec: float = 5.0) -> None:
        self._path = Path(path)
        self._timeout_sec = timeout_sec

    def _connect(self) -> sqlite3.Connection:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self._path), timeout=self._timeout_sec)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    @contextmanager
    def _cursor(self) -> Iterator[sqlite3.Cursor]:
        try:
            conn = self._connect()
        except sqlite3.Error as e:
            raise StorageError(f"cannot open {self._path}: {e}") from e
        try:
            cur = conn.cursor()
            yield cur
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageError(f"sqlite error: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def ensure_schema(self) -> None:
        with self._cursor() as cur:
            cur.execute("PRAGMA table_info(transactions)")
            pk_columns = [r["name"] for r in cur.fetchall() if r["pk"]]
            if pk_columns == ["signature"]:
                # tables from before records were keyed per wallet
                logger.info("store_migrate_composite_key", path=str(self._path))
                for index in ("ix_transactions_wallet", "ix_transactions_wallet_slot", "ix_transactions_kind"):
                    cur.execute(f"DROP INDEX IF EXISTS {index}")
                cur.execute("ALTER TABLE transactions RENAME TO transactions_old")
                cur.executescript(SCHEMA_TRANSACTIONS)
                cur.execute(f"INSERT INTO transactions ({_COLUMNS}) SELECT {_COLUMNS} FROM transactions_old")
                cur.execute("DROP TABLE transactions_old")
            else:
                cur.executescript(SCHEMA_TRANSACTIONS)

    def upsert(self, row: StoredTransactionRow, record_json: str, raw_json: str | None) -> None:
        with self._cursor() as cur:
            cur.execute(
                f"""
                INSERT INTO transactions ({_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(signature, wallet) DO UPDATE SET
                    kind = excluded.kind,
                    slot = excluded.slot,
                    block_time = excluded.block_time,
                    success = excluded.success,
                    record_json = excluded.record_json,
                    raw_json = COALESCE(excluded.raw_json, transactions.raw_json),
                    updated_at = excluded.updated_at
                """,
                (
                    row.signature,
                    row.wallet,
                    row.kind,
                    row.slot,
                    row.block_time,
                    1 if row.success else 0,
                    record_json,
                    raw_json,
                    row.updated_at,
                ),
            )

    def get_record_json(self, signature: str, wallet: str | None = None) -> tuple[str, str | None] | None:
        with self._cursor() as cur:
            if wallet is None:
                cur.execute(
                    "SELECT record_json, raw_json FROM transactions WHERE signature = ? "
                    "ORDER BY updated_at DESC, wallet LIMIT 1",
                    (signature,),
                )
            else:
                cur.execute(
                    "SELECT record_json, raw_json FROM transactions WHERE signature = ? AND wallet = ?",
                    (signature, wallet),
                )
            row = cur.fetchone()
        if row is None:
            return None
        return row["record_json"], row["raw_json"]

    def list_signatures(self, wallet: str | None = None) -> set[str]:
        with self._cursor() as cur:
            if wallet is None:
                cur.execute("SELECT signature FROM transactions")
            else:
                cur.execute("SELECT signature FROM transactions WHERE wallet = ?", (wallet,))
            return {r["signature"] for r in cur.fetchall()}

    def list_rows(self, wallet: str, *, limit: int = 1000, kind: str | None = None) -> list[StoredTransactionRow]:
        sql = (
            "SELECT signature, wallet, kind, slot, block_time, success, updated_at "
            "FROM transactions WHERE wallet = ?"
        )
        params: list[Any] = [wallet]
        if kind is not None:
            sql += " AND kind = ?"
            params.append(kind)
        sql += " ORDER BY slot DESC LIMIT ?"
        params.append(limit)
        with self._cursor() as cur:
            cur.execute(sql, params)
            rows = cur.fetchall()
        return [
            StoredTransactionRow(
                signature=r["signature"],
                wallet=r["wallet"],
                kind=r["kind"],
                slot=r["slot"],
                block_time=r["block_time"],
                success=bool(r["success"]),
                updated_at=r["updated_at"],
            )
            for r in rows
        ]

    def delete(self, signature: str, wallet: str | None = None) -> bool:
        with self._cursor() as cur:
            if wallet is None:
                cur.execute("DELETE FROM transactions WHERE signature = ?", (signature,))
            else:
                cur.execute(
                    "DELETE FROM transactions WHERE signature = ? AND wallet = ?",
                    (signature, wallet),
                )
            return cur.rowcount > 0


# -----------------------------------------------------------------------------
# Store facade
# -----------------------------------------------------------------------------


class TransactionStore:
    """
    store / load / list_known_signatures over a swappable backend.

    Classification is independent of storage: a failed store can be
    retried with the same Transaction.
    """

    def __init__(self, backend: TransactionStoreBackend) -> None:
        self._backend = backend

    def ensure_schema(self) -> None:
        self._backend.ensure_schema()

    def store(self, signature: str, tx: Transaction) -> None:
        """Persist (or replace) the record for signature and tx.wallet."""
        record = tx.to_dict(include_raw=False)
        try:
            record_json = json.dumps(record, sort_keys=True)
            raw_json = (
                json.dumps(tx.raw_transaction_data) if tx.raw_transaction_data is not None else None
            )
        except (TypeError, ValueError) as e:
            raise StorageError(f"record not serializable: {e}", signature=signature) from e
        row = StoredTransactionRow(
            signature=signature,
            wallet=tx.wallet,
            kind=tx.transaction_type.kind,
            slot=tx.slot,
            block_time=tx.block_time,
            success=tx.success,
            updated_at=int(time.time()),
        )
        self._backend.upsert(row, record_json, raw_json)
        logger.debug("store_transaction", signature=signature, wallet=tx.wallet, kind=row.kind)

    def load(self, signature: str, wallet: str | None = None) -> Transaction | None:
        found = self._backend.get_record_json(signature, wallet)
        if found is None:
            return None
        record_json, raw_json = found
        try:
            data = json.loads(record_json)
            data["raw_transaction_data"] = json.loads(raw_json) if raw_json else None
            return Transaction.from_dict(data)
        except (ValueError, KeyError, TypeError) as e:
            raise StorageError(f"corrupt record: {e}", signature=signature) from e

    def load_raw(self, signature: str, wallet: str | None = None) -> dict[str, Any] | None:
        """Stored raw getTransaction payload, for reclassification."""
        found = self._backend.get_record_json(signature, wallet)
        if found is None or not found[1]:
            return None
        try:
            return json.loads(found[1])
        except ValueError as e:
            raise StorageError(f"corrupt raw payload: {e}", signature=signature) from e

    def list_known_signatures(self, wallet: str | None = None) -> set[str]:
        return self._backend.list_signatures(wallet)

    def load_wallet_transactions(
        self,
        wallet: str,
        *,
        limit: int = 1000,
        kind: str | None = None,
    ) -> list[Transaction]:
        """Stored records for a wallet, newest slot first."""
        out = []
        for row in self._backend.list_rows(wallet, limit=limit, kind=kind):
            tx = self.load(row.signature, row.wallet)
            if tx is not None:
                out.append(tx)
        return out

    def delete(self, signature: str, wallet: str | None = None) -> bool:
        """Delete one wallet's record, or every record of the signature."""
        return self._backend.delete(signature, wallet)


def get_transaction_store(path: str | Path | None = None) -> TransactionStore:
    """
    SQLite-backed TransactionStore with schema ensured.

    path defaults to TXENGINE_DB_PATH or data/txengine.db under the project root.
    """
    backend = SQLiteBackend(path if path is not None else get_db_path())
    store = TransactionStore(backend)
    store.ensure_schema()
    return store
