"""Hardware trigger input."""

from .listener import SignalListener

__all__ = ["SignalListener"]
