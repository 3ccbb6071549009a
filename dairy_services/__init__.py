"""
dairy_services -- operation surface of the cooperative ledger.

Owns the transaction boundary: each mutating operation runs in one unit of
work over the flush-only kernel services.
"""

from dairy_services.operations import LedgerOperations
from dairy_services.unit_of_work import read_session, unit_of_work

__all__ = [
    "LedgerOperations",
    "read_session",
    "unit_of_work",
]
