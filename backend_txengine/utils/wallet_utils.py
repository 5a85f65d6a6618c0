"""Wallet validation utilities."""

from solders.pubkey import Pubkey

from backend_txengine.core.exceptions import InvalidWalletError


def is_valid_wallet(w: str) -> bool:
    """Return True if w is a valid Solana wallet (Pubkey) address."""
    try:
        Pubkey.from_string(w.strip())
    except ValueError:
        return False
    return True


def require_wallet(w: str) -> str:
    """Stripped wallet address, or InvalidWalletError."""
    w = (w or "").strip()
    if not is_valid_wallet(w):
        raise InvalidWalletError(f"invalid wallet address: {w!r}")
    return w
