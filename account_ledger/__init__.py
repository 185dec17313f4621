"""
Account Ledger Service

A small banking-account service with a daily withdrawal limit, an
active/blocked account gate and an append-only transaction log.
All financial calculations use Decimal.
"""

__version__ = "1.0.0"
