"""
Best-effort enrichment.

Optional data (valuation-ratio history, analyst growth) must never fail the
primary result. Every such call goes through degrade_to_empty, which logs the
failure and substitutes the caller's empty value.
"""

from __future__ import annotations

from typing import Callable, TypeVar

from .config import LOGGER

T = TypeVar("T")


def degrade_to_empty(fn: Callable[[], T], empty: T, label: str) -> T:
    """
    Run fn, returning empty if it raises.

    Args:
        fn: Zero-argument callable producing the enrichment
        empty: Value returned on failure (e.g. [] or None)
        label: Short description used in the log line

    Returns:
        fn() on success, empty on any exception
    """
    try:
        return fn()
    except Exception as e:
        LOGGER.warning(f"{label} unavailable, continuing without it: {e}")
        return empty
