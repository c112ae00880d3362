"""
Helper modules for kraken-clients.
"""

from .unified_logger import UnifiedLogger, get_exchange_logger, get_logger, get_stream_logger

__all__ = [
    "UnifiedLogger",
    "get_logger",
    "get_exchange_logger",
    "get_stream_logger",
]
