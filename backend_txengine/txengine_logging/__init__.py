"""Structured logging for TxEngine (structlog)."""

from backend_txengine.txengine_logging.logger import (
    bind_signature,
    configure_structlog,
    get_logger,
)

__all__ = ["get_logger", "bind_signature", "configure_structlog"]
