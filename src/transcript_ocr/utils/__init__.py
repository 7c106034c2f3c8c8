"""Logging and console helpers."""

from .logging_utils import (
    RichProgressObserver,
    log_processing_stats,
    setup_logging,
)

__all__ = [
    "RichProgressObserver",
    "log_processing_stats",
    "setup_logging",
]
