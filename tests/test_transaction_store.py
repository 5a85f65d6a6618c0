"""
Tests for the SQLite transaction store: idempotent store/load keyed by (signature, wallet).
"""

from __future__ import annotations

import dataclasses
import json
import sqlite3

import pytest

from backend_txengine.core.exceptions import StorageError
from backend_txengine.database.database import get_transaction_store
from backend_txengine.database.models import StoredTransactionRow
from backend_txengine.transactions.classifier import classify
from backend_txengine.transactions.types import Other, SwapSolToToken, SwapTokenToSol, Unknown
from txbuilders import OTHER_WALLET, WALLET, buy_payload, sell_with_close_payload


def test_store_and_load_round_trip(store):
    tx = classify(buy_payload(), WALLET)
    store.store(tx.signature, tx)

    loaded = store.load(tx.signature)
    assert loaded == tx
    assert loaded.raw_transaction_data == tx.raw_transaction_data
    assert isinstance(loaded.transaction_type, SwapSolToToken)


def test_load_missing_returns_none(store):
    assert store.load("nope") is None
    assert store.load_raw("nope") is None


def test_store_again_replaces_record(store):
    tx = classify(buy_payload(), WALLET)
    store.store(tx.signature, tx)
    replaced = dataclasses.replace(tx, transaction_type=Other(description="manual"))
    store.store(tx.signature, replaced)

    assert store.load(tx.signature).transaction_type == Other(description="manual")
    assert store.list_known_signatures() == {tx.signature}


def test_list_known_signatures_by_wallet(store):
    a = classify(buy_payload(signature="sigA"), WALLET)
    b = classify(buy_payload(signature="sigB"), OTHER_WALLET)
    store.store(a.signature, a)
    store.store(b.signature, b)

    assert store.list_known_signatures() == {"sigA", "sigB"}
    assert store.list_known_signatures(WALLET) == {"sigA"}


def test_load_raw_returns_payload(store):
    payload = buy_payload()
    tx = classify(payload, WALLET)
    store.store(tx.signature, tx)
    assert store.load_raw(tx.signature) == payload


def test_wallet_transactions_newest_slot_first(store):
    older = classify(buy_payload(signature="old", slot=100), WALLET)
    newer = classify(sell_with_close_payload(signature="new", slot=200), WALLET)
    store.store(older.signature, older)
    store.store(newer.signature, newer)

    assert [t.signature for t in store.load_wallet_transactions(WALLET)] == ["new", "old"]
    only_sells = store.load_wallet_transactions(WALLET, kind="SwapTokenToSol")
    assert [t.signature for t in only_sells] == ["new"]


def test_delete(store):
    tx = classify(buy_payload(), WALLET)
    store.store(tx.signature, tx)
    assert store.delete(tx.signature)
    assert not store.delete(tx.signature)
    assert store.load(tx.signature) is None


def test_corrupt_record_raises_storage_error(store):
    row = StoredTransactionRow(
        signature="bad",
        wallet=WALLET,
        kind="Unknown",
        slot=1,
        block_time=None,
        success=True,
        updated_at=0,
    )
    store._backend.upsert(row, "{not json", None)
    with pytest.raises(StorageError) as exc:
        store.load("bad")
    assert exc.value.signature == "bad"
    assert exc.value.code == "storage_failed"


def test_unserializable_raw_raises_storage_error(store):
    tx = classify(buy_payload(), WALLET)
    broken = dataclasses.replace(tx, raw_transaction_data={"x": object()})
    with pytest.raises(StorageError):
        store.store(tx.signature, broken)


def test_default_path_from_env(tmp_path, monkeypatch):
    db_path = tmp_path / "nested" / "env.db"
    monkeypatch.setenv("TXENGINE_DB_PATH", str(db_path))
    s = get_transaction_store()
    tx = classify(buy_payload(), WALLET)
    s.store(tx.signature, tx)
    assert db_path.exists()
    assert isinstance(s.load(tx.signature).transaction_type, SwapSolToToken)


def test_unknown_records_are_stored(store):
    tx = dataclasses.replace(classify(buy_payload(), WALLET), transaction_type=Unknown())
    store.store(tx.signature, tx)
    assert isinstance(store.load(tx.signature).transaction_type, Unknown)


def test_shared_signature_kept_per_wallet(store):
    mine = classify(sell_with_close_payload(signature="shared"), WALLET)
    theirs = classify(sell_with_close_payload(signature="shared"), OTHER_WALLET)
    store.store("shared", mine)
    store.store("shared", theirs)

    assert [t.wallet for t in store.load_wallet_transactions(WALLET)] == [WALLET]
    assert [t.wallet for t in store.load_wallet_transactions(OTHER_WALLET)] == [OTHER_WALLET]
    assert isinstance(store.load("shared", WALLET).transaction_type, SwapTokenToSol)
    assert store.load("shared", OTHER_WALLET).wallet == OTHER_WALLET
    assert not isinstance(store.load("shared", OTHER_WALLET).transaction_type, SwapTokenToSol)
    assert store.list_known_signatures(OTHER_WALLET) == {"shared"}

    assert store.delete("shared", OTHER_WALLET)
    assert store.load("shared", OTHER_WALLET) is None
    assert store.load("shared", WALLET) == mine


def test_signature_keyed_table_is_upgraded(tmp_path):
    db_path = tmp_path / "old.db"
    conn = sqlite3.connect(db_path)
    conn.executescript(
        """
        CREATE TABLE transactions (
            signature TEXT PRIMARY KEY,
            wallet TEXT NOT NULL,
            kind TEXT NOT NULL,
            slot INTEGER,
            block_time INTEGER,
            success INTEGER NOT NULL,
            record_json TEXT NOT NULL,
            raw_json TEXT,
            updated_at INTEGER NOT NULL
        );
        CREATE INDEX ix_transactions_wallet ON transactions(wallet);
        """
    )
    tx = classify(buy_payload(), WALLET)
    conn.execute(
        "INSERT INTO transactions VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
        (
            tx.signature,
            WALLET,
            tx.transaction_type.kind,
            tx.slot,
            tx.block_time,
            1,
            json.dumps(tx.to_dict(include_raw=False)),
            json.dumps(tx.raw_transaction_data),
            0,
        ),
    )
    conn.commit()
    conn.close()

    s = get_transaction_store(db_path)
    assert s.load(tx.signature, WALLET) == tx
    s.store(tx.signature, classify(buy_payload(), OTHER_WALLET))
    assert s.load(tx.signature, WALLET) == tx
    assert s.list_known_signatures() == {tx.signature}
