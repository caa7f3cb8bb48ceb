"""
Reconciliation Kernel

Persistence, domain values and kernel services for the financial
reconciliation engine:
- Fixed-point currency arithmetic (2 decimal places, round-half-up)
- Append-only, hash-chained audit trail
- ORM-level immutability for reconciliation artifacts
- Read-only selectors over the ledger and reconciliation history
"""

__version__ = "0.1.0"
