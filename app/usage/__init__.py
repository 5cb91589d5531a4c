"""
Per-user storage usage ledger and its rollup jobs.
"""

from .ledger import UsageLedger, UserUsage

__all__ = [
    'UsageLedger',
    'UserUsage',
]
