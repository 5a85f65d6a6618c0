"""Token metadata consumed from an external lookup_token collaborator."""

from backend_txengine.tokens.cache import TokenCache, TokenLookup
from backend_txengine.tokens.models import TokenInfo

__all__ = ["TokenCache", "TokenInfo", "TokenLookup"]
