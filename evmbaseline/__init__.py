"""Baseline EVM interpreter core: instruction tables, execution state, code analysis and dispatch."""

__version__ = "0.1.0"
__all__ = ["baseline", "instructions", "state"]