"""
ATA lifecycle accounting.

Sums rent spent on account creations and recovered on closures, split into
wrapped-SOL and token buckets. All sums are integer lamports and saturate
at the u64 range instead of growing without bound.
"""

from __future__ import annotations

from typing import Iterable

from backend_txengine.transactions.constants import U64_MAX
from backend_txengine.transactions.patterns import DetectedAtaOp
from backend_txengine.transactions.types import AtaAnalysis, AtaOperation, AtaOperationType

I64_MIN = -(2**63)
I64_MAX = 2**63 - 1


def saturating_add(a: int, b: int) -> int:
    return min(a + b, U64_MAX)


def saturating_sub(a: int, b: int) -> int:
    """a - b clamped to the signed 64-bit range."""
    return max(I64_MIN, min(a - b, I64_MAX))


def compute_ata_analysis(ops: Iterable[DetectedAtaOp]) -> AtaAnalysis:
    """Build an AtaAnalysis from detected creation/closure operations."""
    counts = {
        "total_ata_creations": 0,
        "total_ata_closures": 0,
        "token_ata_creations": 0,
        "token_ata_closures": 0,
        "wsol_ata_creations": 0,
        "wsol_ata_closures": 0,
    }
    spent = {"total": 0, "token": 0, "wsol": 0}
    recovered = {"total": 0, "token": 0, "wsol": 0}
    detected: list[AtaOperation] = []

    for op in ops:
        bucket = "wsol" if op.is_wsol else "token"
        rent = max(0, int(op.rent_lamports))
        if op.operation_type is AtaOperationType.CREATION:
            counts["total_ata_creations"] += 1
            counts[f"{bucket}_ata_creations"] += 1
            spent["total"] = saturating_add(spent["total"], rent)
            spent[bucket] = saturating_add(spent[bucket], rent)
        else:
            counts["total_ata_closures"] += 1
            counts[f"{bucket}_ata_closures"] += 1
            recovered["total"] = saturating_add(recovered["total"], rent)
            recovered[bucket] = saturating_add(recovered[bucket], rent)
        detected.append(
            AtaOperation(
                operation_type=op.operation_type,
                account_address=op.account_address,
                token_mint=op.token_mint,
                is_wsol=op.is_wsol,
                rent_amount=rent,
            )
        )

    return AtaAnalysis(
        **counts,
        total_rent_spent=spent["total"],
        total_rent_recovered=recovered["total"],
        net_rent_impact=saturating_sub(recovered["total"], spent["total"]),
        token_rent_spent=spent["token"],
        token_rent_recovered=recovered["token"],
        token_net_rent_impact=saturating_sub(recovered["token"], spent["token"]),
        wsol_rent_spent=spent["wsol"],
        wsol_rent_recovered=recovered["wsol"],
        wsol_net_rent_impact=saturating_sub(recovered["wsol"], spent["wsol"]),
        detected_operations=tuple(detected),
    )
