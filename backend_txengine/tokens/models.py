"""Token metadata record."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TokenInfo:
    mint: str
    symbol: str
    name: str = ""
    decimals: int = 9
