"""Alternatives module: swap sessions over a single meal slot."""

from .broker import AlternativesBroker, SwapSession, SwapState, clamp_limit

__all__ = ["AlternativesBroker", "SwapSession", "SwapState", "clamp_limit"]
