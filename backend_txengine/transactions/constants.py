"""
Chain constants used by the classifier: program ids, router names, rent.
"""

from __future__ import annotations

LAMPORTS_PER_SOL = 1_000_000_000

WSOL_MINT = "So11111111111111111111111111111111111111112"

SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"
TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_2022_PROGRAM_ID = "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb"
ASSOCIATED_TOKEN_PROGRAM_ID = "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL"
COMPUTE_BUDGET_PROGRAM_ID = "ComputeBudget111111111111111111111111111111"
STAKE_PROGRAM_ID = "Stake11111111111111111111111111111111111111"
BUBBLEGUM_PROGRAM_ID = "BGUMAp9Gq7iTEuizy4pqaxsTyUCBK68MDfK752saRPUY"
MEMO_PROGRAM_ID = "MemoSq4gqABAXKb96qnH8TysNcWxMyWCqXgDLGmfcHr"

TOKEN_PROGRAM_IDS = frozenset({TOKEN_PROGRAM_ID, TOKEN_2022_PROGRAM_ID})

# Standard rent-exempt minimum for a 165-byte token account
ATA_RENT_LAMPORTS = 2_039_280

# Balance deltas in this band on a non-wallet account look like account rent
RENT_BAND_MIN_LAMPORTS = 1_500_000
RENT_BAND_MAX_LAMPORTS = 3_000_000

DUST_THRESHOLD = 1e-6
DEFAULT_TOKEN_DECIMALS = 9

# Minimum native move for a plain SOL transfer
MIN_SOL_TRANSFER = 0.0001
# Token-to-token legs below this are treated as routing noise
MIN_TOKEN_SWAP_LEG = 0.001
# Token-to-token swaps may carry a small native side payment (platform fee)
MAX_SWAP_SIDE_FEE_LAMPORTS = 5_000_000

U64_MAX = 2**64 - 1

JUPITER_V6 = "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4"
JUPITER_V4 = "JUP4Fb2cqiRUcaTHdrPC8h2gNsA2ETXiPDD33WcGuJB"
JUPITER_V2 = "JUP2jxvXaqu7NQY1GmNF4m1vodw12LVXYxbFL2uJvfo"
PUMP_FUN = "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P"
PUMP_FUN_AMM = "pAMMBay6oceH9fJKBRHGP5D4bD4sWpmSwMn52FMfXEA"
GMGN = "GMGNreQcJFufBiCTLDBgKhYEfEe9B454UjpDr5CaSLA1"
RAYDIUM_AMM = "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8"
RAYDIUM_CLMM = "CAMMCzo5YL8w4VFF8KVHrK22GGUsp5VTaW7grrKgrWqK"
RAYDIUM_CPMM = "CPMMoo8L3F4NbTegBCKVNunggL7H1ZpdTHKxQB5qKP1C"
ORCA_V2 = "9W959DqEETiGZocYWCQPaJ6sBmUzgfxXfqGeTEdp3aQP"
ORCA_WHIRLPOOL = "whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc"
ORCA_V1 = "DjVE6JNiYqPL2QXyCUUh8rNjHrbz9hXHNYt99MQ59qw1"
SERUM_V3 = "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin"
SERUM_V2 = "srmqPiDkJokFGBWxH3qzowH4NhGFaKjR5Ek8TRnq6PZ"
OPENBOOK = "opnb2LAfJYbRMAHHvqjCwQxanZn7ReEHp1k81EohpZb"
PHOENIX = "PhoeNiX7BPQtuPBGYWf5KhxZVsXBMNzC9mHvgSe3kfE"
METEORA = "Dooar9JkhdZ7J3LHN3A7YCuoGRUggXhQaG4kijfLGU2j"
LIFINITY = "EewxydAPCCVuNEyrVN68PuSYdQ7wKn27V9Gjeoi8dy3S"
ALDRIN = "82yxjeMsvaURa4MbZZ7WZZHfobirZYkH1zF8fmeGtyaQ"
STEP_FINANCE = "SSwpkEEWHvVFuuiB1EePEIrkHTjLZZT3tMfnr5U3qL7n"

# Program id -> router display name. Dict order is the reporting priority
# when several routers show up in one transaction.
ROUTER_PROGRAMS: dict[str, str] = {
    PUMP_FUN: "Pump.fun",
    PUMP_FUN_AMM: "Pump.fun AMM",
    GMGN: "GMGN",
    JUPITER_V6: "Jupiter",
    JUPITER_V4: "Jupiter v3",
    JUPITER_V2: "Jupiter v2",
    RAYDIUM_AMM: "Raydium",
    RAYDIUM_CLMM: "Raydium CLMM",
    RAYDIUM_CPMM: "Raydium CPMM",
    ORCA_WHIRLPOOL: "Orca Whirlpool",
    ORCA_V2: "Orca",
    ORCA_V1: "Orca v1",
    SERUM_V3: "Serum",
    SERUM_V2: "Serum",
    OPENBOOK: "OpenBook",
    PHOENIX: "Phoenix",
    METEORA: "Meteora",
    LIFINITY: "Lifinity",
    ALDRIN: "Aldrin",
    STEP_FINANCE: "Step Finance",
}

JUPITER_PROGRAMS = frozenset({JUPITER_V6, JUPITER_V4, JUPITER_V2})

UNKNOWN_ROUTER = "Unknown"

# Jito / MEV tip accounts; wallet transfers into these are not part of a swap leg
MEV_TIP_ACCOUNTS = frozenset({
    "96gYZGLnJYVFmbjzopPSU6QiEV5fGqZNyN9nmNhvrZU5",
    "HFqU5x63VTqvQss8hp11i4wVV8bD44PvwucfZ2bU7gRe",
    "Cw8CFyM9FkoMi7K7Crf6HNQqf4uEMzpKw6QNghXLvLkY",
    "ADaUMid9yfUytqMBgopwjb2DTLSokTSzL1zt6iGPaS49",
    "DfXygSm4jCyNCybVYYK6DwvWqjKee8pbDmJGcLWNDXjh",
    "ADuUkR4vqLUMWXxW9gh6D6L8pMSawimctcNZ5pGwDcEt",
    "DttWaMuVvTiduZRnguLF7jNxTgiMBZ1hyAumKUiL2KRL",
    "3AVi9Tg9Uo68tJfuvoKvqKNWKkC5wPdSSdeBnizKZ6jT",
})
