"""
JSON-RPC transport for getTransaction and getSignaturesForAddress.

Retries transport errors and HTTP 429 with a fixed delay. Any failure to
produce a usable payload raises TransactionFetchError; classification is
never attempted on a failed fetch.
"""

from __future__ import annotations

import itertools
import time
from typing import Any

import requests

from backend_txengine.config.env import get_solana_rpc_url
from backend_txengine.config.settings import Settings, get_settings
from backend_txengine.core.exceptions import TransactionFetchError
from backend_txengine.solana_listener.models import SignatureInfo
from backend_txengine.txengine_logging import get_logger

logger = get_logger(__name__)

MAX_SIGNATURES_PER_PAGE = 1000


class SolanaRpcClient:
    """Minimal Solana JSON-RPC client over a requests.Session."""

    def __init__(
        self,
        url: str | None = None,
        *,
        settings: Settings | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self.url = url or get_solana_rpc_url()
        self._session = session or requests.Session()
        self._ids = itertools.count(1)

    def _rpc_post(self, method: str, params: list[Any], *, signature: str | None = None) -> Any:
        """POST one JSON-RPC call and return its `result`."""
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        s = self._settings
        last_error = "no attempt made"
        for attempt in range(s.max_retries):
            try:
                r = self._session.post(self.url, json=payload, timeout=s.request_timeout_sec)
                if r.status_code == 429:
                    last_error = "rate limited (429)"
                    logger.warning("rpc_rate_limited", method=method, attempt=attempt + 1)
                    time.sleep(s.retry_delay_sec)
                    continue
                r.raise_for_status()
                data = r.json()
            except (requests.RequestException, ValueError) as e:
                last_error = str(e)
                logger.warning("rpc_request_error", method=method, attempt=attempt + 1, error=last_error)
                if attempt < s.max_retries - 1:
                    time.sleep(s.retry_delay_sec)
                continue
            err = data.get("error") if isinstance(data, dict) else None
            if err:
                raise TransactionFetchError(f"{method} RPC error: {err}", signature=signature)
            return data.get("result") if isinstance(data, dict) else None
        raise TransactionFetchError(
            f"{method} failed after {s.max_retries} attempts: {last_error}",
            signature=signature,
        )

    def fetch_transaction(self, signature: str) -> dict[str, Any]:
        """getTransaction (jsonParsed, v0 messages). Raises TransactionFetchError."""
        params = [
            signature,
            {"encoding": "jsonParsed", "maxSupportedTransactionVersion": 0, "commitment": "confirmed"},
        ]
        result = self._rpc_post("getTransaction", params, signature=signature)
        if not isinstance(result, dict):
            raise TransactionFetchError("transaction not found", signature=signature)
        if not isinstance(result.get("transaction"), dict) or not isinstance(result.get("meta"), dict):
            raise TransactionFetchError("payload missing transaction or meta", signature=signature)
        return result

    def get_signatures_for_address(
        self,
        address: str,
        *,
        limit: int | None = None,
        before: str | None = None,
        until: str | None = None,
    ) -> list[SignatureInfo]:
        """One page of signatures, newest first."""
        opts: dict[str, Any] = {
            "limit": min(limit or self._settings.signatures_page_limit, MAX_SIGNATURES_PER_PAGE)
        }
        if before:
            opts["before"] = before
        if until:
            opts["until"] = until
        result = self._rpc_post("getSignaturesForAddress", [address, opts])
        if not isinstance(result, list):
            return []
        out = []
        for item in result:
            try:
                out.append(SignatureInfo.from_rpc_item(item))
            except (KeyError, TypeError, ValueError):
                logger.debug("rpc_skip_signature_item", item=str(item)[:120])
        return out

    def iter_signatures(self, address: str, *, max_count: int, until: str | None = None) -> list[SignatureInfo]:
        """Page backwards until max_count signatures or the `until` signature."""
        out: list[SignatureInfo] = []
        before: str | None = None
        while len(out) < max_count:
            page = self.get_signatures_for_address(
                address, limit=max_count - len(out), before=before, until=until
            )
            if not page:
                break
            out.extend(page)
            before = page[-1].signature
        return out[:max_count]
