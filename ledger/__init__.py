"""
Household Ledger - Source Package

A personal household ledger: one account balance, monthly expenses
and a savings vault, viewed one calendar month at a time.

DESIGN PRINCIPLES:
1. Every mutation is a pure function (document, intent) -> new document
2. Recurring expenses are copied into each month they appear in
3. A user deletion is never resurrected by propagation
4. Past months are read-mostly
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Household Ledger Team"
