"""
Transaction pipeline: fetch -> classify -> store, then wallet reports.

Fetches fan out over a bounded ThreadPoolExecutor; classification is pure
and runs inside the worker; writes happen on the calling thread. A fetch
failure skips that signature, a storage failure is reported but the
classified record is still returned.
"""

from __future__ import annotations

from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from backend_txengine.analytics.fifo import RealizedPnLReport, compute_fifo_realized_pnl
from backend_txengine.analytics.filters import FilterSpec, filter_swaps
from backend_txengine.analytics.swap_pnl import SwapPnLInfo, swaps_from_transactions
from backend_txengine.analytics.swap_stats import (
    SwapStatistics,
    TransactionStats,
    compute_swap_statistics,
    compute_transaction_stats,
)
from backend_txengine.config.settings import Settings, get_settings
from backend_txengine.core.exceptions import StorageError, TransactionFetchError
from backend_txengine.database.database import TransactionStore
from backend_txengine.tokens.cache import TokenCache
from backend_txengine.tokens.models import TokenInfo
from backend_txengine.transactions.classifier import classify
from backend_txengine.transactions.types import Transaction
from backend_txengine.txengine_logging import get_logger

logger = get_logger(__name__)

FetchTransaction = Callable[[str], dict[str, Any]]
ListSignatures = Callable[[str, int], list[str]]


@dataclass
class PipelineResult:
    transactions: list[Transaction] = field(default_factory=list)
    fetch_errors: dict[str, str] = field(default_factory=dict)
    storage_errors: dict[str, str] = field(default_factory=dict)
    skipped_known: int = 0


@dataclass
class WalletReport:
    wallet: str
    transaction_stats: TransactionStats
    swap_stats: SwapStatistics
    realized: RealizedPnLReport
    swaps: list[SwapPnLInfo]
    unknown_signatures: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "wallet": self.wallet,
            "transaction_stats": self.transaction_stats.to_dict(),
            "swap_stats": self.swap_stats.to_dict(),
            "realized": {
                "realized_spent": self.realized.realized_spent,
                "realized_received": self.realized.realized_received,
                "realized_fees": self.realized.realized_fees,
                "realized_net": self.realized.realized_net,
                "open_inventory_cost": self.realized.open_inventory_cost,
                "unmatched_sell_qty": self.realized.unmatched_sell_qty,
            },
            "swaps": [s.to_dict() for s in self.swaps],
            "unknown_signatures": self.unknown_signatures,
        }


class TransactionPipeline:
    def __init__(
        self,
        fetch_transaction: FetchTransaction,
        store: TransactionStore,
        *,
        list_signatures: ListSignatures | None = None,
        token_cache: TokenCache | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._fetch = fetch_transaction
        self._store = store
        self._list_signatures = list_signatures
        self._tokens = token_cache or TokenCache()
        self._settings = settings or get_settings()

    def _fetch_and_classify(self, signature: str, wallet: str) -> Transaction:
        raw = self._fetch(signature)
        return classify(
            raw,
            wallet,
            decimals_lookup=self._tokens.decimals,
            settings=self._settings,
        )

    def process_signatures(self, wallet: str, signatures: Iterable[str]) -> PipelineResult:
        """Fetch, classify and store each signature; order of results follows input."""
        signatures = list(dict.fromkeys(signatures))
        result = PipelineResult()
        if not signatures:
            return result
        logger.info("pipeline_start", wallet=wallet, signatures=len(signatures))

        classified: dict[str, Transaction] = {}
        with ThreadPoolExecutor(max_workers=self._settings.fetch_workers) as executor:
            futures = {
                executor.submit(self._fetch_and_classify, sig, wallet): sig for sig in signatures
            }
            for fut in as_completed(futures):
                sig = futures[fut]
                try:
                    classified[sig] = fut.result()
                except TransactionFetchError as e:
                    logger.error("pipeline_fetch_failed", signature=sig, error=str(e))
                    result.fetch_errors[sig] = str(e)

        for sig in signatures:
            tx = classified.get(sig)
            if tx is None:
                continue
            result.transactions.append(tx)
            try:
                self._store.store(sig, tx)
            except StorageError as e:
                logger.error("pipeline_store_failed", signature=sig, error=str(e))
                result.storage_errors[sig] = str(e)

        logger.info(
            "pipeline_done",
            wallet=wallet,
            classified=len(result.transactions),
            fetch_errors=len(result.fetch_errors),
            storage_errors=len(result.storage_errors),
        )
        return result

    def process_new(self, wallet: str, *, max_count: int = 100) -> PipelineResult:
        """Process only signatures the store has no record of for this wallet."""
        if self._list_signatures is None:
            raise ValueError("pipeline has no list_signatures collaborator")
        recent = self._list_signatures(wallet, max_count)
        known = self._store.list_known_signatures(wallet)
        new = [s for s in recent if s not in known]
        result = self.process_signatures(wallet, new)
        result.skipped_known = len(recent) - len(new)
        return result

    def reanalyze(self, signature: str, wallet: str) -> Transaction | None:
        """Reclassify from the stored raw payload and overwrite this wallet's record."""
        # the raw payload is the same whichever wallet it was first stored for
        raw = self._store.load_raw(signature, wallet) or self._store.load_raw(signature)
        if raw is None:
            return None
        tx = classify(raw, wallet, decimals_lookup=self._tokens.decimals, settings=self._settings)
        self._store.store(signature, tx)
        return tx

    def wallet_report(
        self,
        wallet: str,
        *,
        spec: FilterSpec | None = None,
        limit: int = 10_000,
    ) -> WalletReport:
        """Statistics, swap list and FIFO realized P&L from stored records."""
        txs = self._store.load_wallet_transactions(wallet, limit=limit)
        return build_wallet_report(wallet, txs, self._tokens, spec=spec)


def build_wallet_report(
    wallet: str,
    txs: list[Transaction],
    token_cache: Mapping[str, TokenInfo],
    *,
    spec: FilterSpec | None = None,
) -> WalletReport:
    swaps = swaps_from_transactions(txs, token_cache)
    if spec is not None:
        swaps = filter_swaps(swaps, spec)
    return WalletReport(
        wallet=wallet,
        transaction_stats=compute_transaction_stats(txs),
        swap_stats=compute_swap_statistics(swaps),
        realized=compute_fifo_realized_pnl(swaps),
        swaps=swaps,
        unknown_signatures=[tx.signature for tx in txs if tx.transaction_type.kind == "Unknown"],
    )
