"""
Stock Kernel

Append-only stock ledger and per-owner inventory aggregate with:
- Ledger replay reproducing every product's quantity
- Atomic stock changes (ledger, product, aggregate in one transaction)
- Row locks plus optimistic versions on products and aggregates
- Alerts regenerated from state without losing read flags
"""

__version__ = "0.1.0"
