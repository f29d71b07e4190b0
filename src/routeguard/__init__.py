"""Route resolution and execution-safety engine for on-chain swaps."""

__version__ = "0.1.0"
