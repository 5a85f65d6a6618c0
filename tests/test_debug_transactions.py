"""
Tests for the debug CLI. SolanaRpcClient is replaced with an in-memory fake.
"""

from __future__ import annotations

import json

import pytest

from backend_txengine.tools import debug_transactions
from backend_txengine.transactions.classifier import classify
from txbuilders import SIG, WALLET, buy_payload, unknown_program_payload


class FakeClient:
    payloads = {SIG: buy_payload()}

    def __init__(self, *args, **kwargs):
        pass

    def fetch_transaction(self, signature):
        from backend_txengine.core.exceptions import TransactionFetchError

        if signature not in self.payloads:
            raise TransactionFetchError("transaction not found", signature=signature)
        return self.payloads[signature]

    def iter_signatures(self, address, *, max_count, until=None):
        return []


@pytest.fixture
def fake_rpc(monkeypatch):
    monkeypatch.setattr(debug_transactions, "SolanaRpcClient", FakeClient)


def test_describe_unknown_includes_diagnostics(token_cache):
    tx = classify(unknown_program_payload(), WALLET)
    out = debug_transactions.describe_transaction(tx, token_cache)

    assert out["type"]["kind"] == "Unknown"
    assert out["programs"]
    assert "token_deltas" in out
    assert "swap" not in out


def test_describe_swap_includes_pnl(token_cache):
    out = debug_transactions.describe_transaction(classify(buy_payload(), WALLET), token_cache)
    assert out["swap"]["swap_type"] == "Buy"
    assert "programs" not in out


def test_invalid_wallet_exits_nonzero(capsys):
    assert debug_transactions.main(["--wallet", "bad"]) == 1
    assert "invalid wallet" in capsys.readouterr().err


def test_signature_is_classified_and_stored(fake_rpc, tmp_path, capsys):
    db = tmp_path / "cli.db"
    assert debug_transactions.main(["--wallet", WALLET, "--signature", SIG, "--db", str(db)]) == 0
    printed = json.loads(capsys.readouterr().out)
    assert printed["signature"] == SIG
    assert printed["swap"]["swap_type"] == "Buy"

    assert debug_transactions.main(["--wallet", WALLET, "--report", "--db", str(db)]) == 0
    report = json.loads(capsys.readouterr().out)
    assert report["swap_stats"]["buy_count"] == 1


def test_missing_signature_exits_nonzero(fake_rpc, tmp_path, capsys):
    rc = debug_transactions.main(
        ["--wallet", WALLET, "--signature", "nope", "--db", str(tmp_path / "cli.db")]
    )
    assert rc == 1
    assert "nope" in capsys.readouterr().out


def test_reanalyze_without_record(fake_rpc, tmp_path, capsys):
    rc = debug_transactions.main(
        ["--wallet", WALLET, "--reanalyze", "nope", "--db", str(tmp_path / "cli.db")]
    )
    assert rc == 1
    assert "No stored raw payload" in capsys.readouterr().out
