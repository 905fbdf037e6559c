"""
Mock Bank

A simulated single-user banking backend: balance, transfers and top-ups
applied to a locally persisted ledger, using Decimal for all money math.
"""

__version__ = "1.0.0"
