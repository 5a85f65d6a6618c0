"""
Backend TxEngine: transaction classification and PnL analytics for a Solana trading bot.

Turns confirmed getTransaction payloads into typed Transaction records
(swaps, transfers, ATA lifecycle, fees, routers) and aggregates them into
per-swap, FIFO realized and ATA-rent reports.
"""

__version__ = "0.1.0"
