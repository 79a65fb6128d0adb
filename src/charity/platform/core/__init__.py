"""Shared infrastructure: the injectable clock and HTTP exception handlers."""

from .clock import Clock, FrozenClock, SystemClock, ensure_aware

__all__ = ["Clock", "SystemClock", "FrozenClock", "ensure_aware"]
