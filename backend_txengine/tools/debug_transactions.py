"""
Debug tool: classify one signature, reanalyze stored records, or print a wallet report.

Usage:
    python -m backend_txengine.tools.debug_transactions --wallet W --signature S
    python -m backend_txengine.tools.debug_transactions --wallet W --fetch-new 50
    python -m backend_txengine.tools.debug_transactions --wallet W --report [--mint M]

Unknown transactions are printed with their program ids and raw deltas so
the ruleset can be extended by hand.
"""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime, timezone

from backend_txengine.analytics.filters import FilterSpec
from backend_txengine.analytics.swap_pnl import to_swap_pnl
from backend_txengine.analytics.transaction_pipeline import TransactionPipeline
from backend_txengine.core.exceptions import TxEngineError
from backend_txengine.database.database import get_transaction_store
from backend_txengine.solana_listener.rpc_client import SolanaRpcClient
from backend_txengine.tokens.cache import TokenCache
from backend_txengine.transactions.patterns import describe_program
from backend_txengine.transactions.types import Transaction, transaction_type_to_dict
from backend_txengine.txengine_logging import get_logger
from backend_txengine.utils.wallet_utils import require_wallet

logger = get_logger(__name__)


def _parse_date(value: str) -> datetime:
    return datetime.strptime(value, "%Y-%m-%d").replace(tzinfo=timezone.utc)


def describe_transaction(tx: Transaction, token_cache: TokenCache) -> dict:
    """Printable summary; Unknown records carry diagnostics."""
    out = {
        "signature": tx.signature,
        "slot": tx.slot,
        "success": tx.success,
        "direction": tx.direction.value,
        "fee_sol": tx.fee_sol,
        "sol_balance_change": tx.sol_balance_change,
        "type": transaction_type_to_dict(tx.transaction_type),
    }
    if tx.ata_analysis is not None:
        out["ata"] = {
            "creations": tx.ata_analysis.total_ata_creations,
            "closures": tx.ata_analysis.total_ata_closures,
            "rent_spent_sol": tx.ata_analysis.total_rent_spent_sol,
            "rent_recovered_sol": tx.ata_analysis.total_rent_recovered_sol,
            "net_rent_sol": tx.ata_analysis.net_rent_impact_sol,
        }
    pnl = to_swap_pnl(tx, token_cache)
    if pnl is not None:
        out["swap"] = pnl.to_dict()
    if tx.transaction_type.kind == "Unknown":
        out["programs"] = [describe_program(p) for p in tx.program_ids]
        out["token_deltas"] = [
            {"mint": c.mint, "owner": c.owner, "delta": c.delta} for c in tx.token_balance_changes
        ]
    if tx.error_message:
        out["error"] = tx.error_message
    return out


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Classify and report Solana wallet transactions")
    parser.add_argument("--wallet", required=True, help="Wallet public key")
    parser.add_argument("--signature", help="Classify a single signature and store it")
    parser.add_argument("--reanalyze", help="Reclassify a stored signature from its raw payload")
    parser.add_argument("--fetch-new", type=int, metavar="N", help="Process up to N new signatures")
    parser.add_argument("--report", action="store_true", help="Print wallet statistics and realized P&L")
    parser.add_argument("--mint", help="Report filter: token mint")
    parser.add_argument("--from-date", type=_parse_date, help="Report filter: YYYY-MM-DD (inclusive)")
    parser.add_argument("--to-date", type=_parse_date, help="Report filter: YYYY-MM-DD (inclusive)")
    parser.add_argument("--db", help="SQLite path (default: TXENGINE_DB_PATH)")
    args = parser.parse_args(argv)

    try:
        wallet = require_wallet(args.wallet)
        client = SolanaRpcClient()
        store = get_transaction_store(args.db)
        tokens = TokenCache()
        pipeline = TransactionPipeline(
            client.fetch_transaction,
            store,
            list_signatures=lambda w, n: [s.signature for s in client.iter_signatures(w, max_count=n)],
            token_cache=tokens,
        )

        if args.signature:
            result = pipeline.process_signatures(wallet, [args.signature])
            if result.fetch_errors:
                print(json.dumps(result.fetch_errors, indent=2))
                return 1
            for tx in result.transactions:
                print(json.dumps(describe_transaction(tx, tokens), indent=2))
        if args.reanalyze:
            tx = pipeline.reanalyze(args.reanalyze, wallet)
            if tx is None:
                print(f"No stored raw payload for {args.reanalyze}")
                return 1
            print(json.dumps(describe_transaction(tx, tokens), indent=2))
        if args.fetch_new:
            result = pipeline.process_new(wallet, max_count=args.fetch_new)
            print(
                f"Classified {len(result.transactions)} new, skipped {result.skipped_known} known, "
                f"{len(result.fetch_errors)} fetch errors"
            )
        if args.report:
            end = args.to_date.replace(hour=23, minute=59, second=59) if args.to_date else None
            spec = FilterSpec.from_dates(args.from_date, end, mint=args.mint)
            report = pipeline.wallet_report(wallet, spec=spec)
            print(json.dumps(report.to_dict(), indent=2, default=str))
    except TxEngineError as e:
        logger.error("debug_transactions_failed", error=str(e), code=e.code)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
