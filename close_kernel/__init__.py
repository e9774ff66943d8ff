"""
Close Kernel - deterministic month-close core

An event-sourced, append-only close analytics kernel with:
- Integer-cent money and VAT primitives
- Immutable business events with a canonical total order
- Typed, coded errors with policy metadata
- Structured JSON logging
- A SQL document store for finalize runs
"""

__version__ = "0.1.0"
