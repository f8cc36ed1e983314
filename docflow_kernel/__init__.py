"""
Docflow Kernel - document approval workflow engine

An event-sourced, append-only workflow core with:
- Pure transition table (state machine core)
- Gapless per-document transition log with compare-and-append
- Capability-based authorization gate
- Derived projections (no stored status)
"""

__version__ = "0.1.0"
