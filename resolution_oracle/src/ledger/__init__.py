"""Ledger collaborators that execute bonding and settlement transactions."""

from .base import LedgerClient, LedgerError, LedgerReceipt
from .uma import DEFAULT_ORACLE_ADDRESS, UmaLedgerClient

__all__ = [
    "DEFAULT_ORACLE_ADDRESS",
    "LedgerClient",
    "LedgerError",
    "LedgerReceipt",
    "UmaLedgerClient",
]
