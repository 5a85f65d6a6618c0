"""
In-memory token cache in front of a lookup_token(mint) collaborator.

The collaborator returns None for unknown tokens; misses are remembered
so each mint is looked up at most once per cache.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Callable, Iterable, Iterator

from backend_txengine.tokens.models import TokenInfo
from backend_txengine.transactions.constants import WSOL_MINT

TokenLookup = Callable[[str], "TokenInfo | None"]

_WSOL_INFO = TokenInfo(mint=WSOL_MINT, symbol="SOL", name="Wrapped SOL", decimals=9)


class TokenCache(Mapping[str, TokenInfo]):
    """Read-only mapping mint -> TokenInfo, filled lazily from lookup_token."""

    def __init__(
        self,
        lookup_token: TokenLookup | None = None,
        initial: Iterable[TokenInfo] = (),
    ) -> None:
        self._lookup = lookup_token
        self._known: dict[str, TokenInfo] = {WSOL_MINT: _WSOL_INFO}
        self._misses: set[str] = set()
        for info in initial:
            self._known[info.mint] = info

    def __getitem__(self, mint: str) -> TokenInfo:
        info = self.get(mint)
        if info is None:
            raise KeyError(mint)
        return info

    def get(self, mint: str, default: TokenInfo | None = None) -> TokenInfo | None:  # type: ignore[override]
        if mint in self._known:
            return self._known[mint]
        if self._lookup is None or mint in self._misses:
            return default
        info = self._lookup(mint)
        if info is None:
            self._misses.add(mint)
            return default
        self._known[mint] = info
        return info

    def __contains__(self, mint: object) -> bool:
        return isinstance(mint, str) and self.get(mint) is not None

    def __iter__(self) -> Iterator[str]:
        return iter(self._known)

    def __len__(self) -> int:
        return len(self._known)

    def decimals(self, mint: str) -> int | None:
        """Decimals for the classifier's decimals_lookup; None when unknown."""
        info = self.get(mint)
        return info.decimals if info is not None else None
