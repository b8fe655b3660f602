"""
Account Ledger

Transactional ledger for named accounts: invariant-checked deposits and
withdrawals, all-or-nothing persistence and a single serialization point
for concurrent callers.
"""

__version__ = "1.0.0"
