"""Conjunctive swap filters; every bound inclusive, None means unconstrained."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from backend_txengine.analytics.swap_pnl import SwapPnLInfo


@dataclass(frozen=True)
class FilterSpec:
    from_ts: int | None = None
    to_ts: int | None = None
    min_sol: float | None = None
    max_sol: float | None = None
    mint: str | None = None
    swap_type: str | None = None

    @classmethod
    def from_dates(
        cls,
        start: datetime | None = None,
        end: datetime | None = None,
        **kwargs,
    ) -> "FilterSpec":
        return cls(
            from_ts=int(start.timestamp()) if start else None,
            to_ts=int(end.timestamp()) if end else None,
            **kwargs,
        )

    def matches(self, swap: SwapPnLInfo) -> bool:
        if self.from_ts is not None or self.to_ts is not None:
            if swap.timestamp is None:
                return False
            if self.from_ts is not None and swap.timestamp < self.from_ts:
                return False
            if self.to_ts is not None and swap.timestamp > self.to_ts:
                return False
        if self.min_sol is not None and swap.sol_amount < self.min_sol:
            return False
        if self.max_sol is not None and swap.sol_amount > self.max_sol:
            return False
        if self.mint is not None and swap.token_mint != self.mint:
            return False
        if self.swap_type is not None and swap.swap_type != self.swap_type:
            return False
        return True


def filter_swaps(swaps: Iterable[SwapPnLInfo], spec: FilterSpec) -> list[SwapPnLInfo]:
    return [s for s in swaps if spec.matches(s)]
