"""
SmartFinance - Source Package

A personal finance ledger: accounts and transactions synced live with
Firestore for signed-in users, a seeded local ledger for guests, and
Gemini-generated advice with fixed fallbacks.

DESIGN PRINCIPLES:
1. One authoritative identity, one ledger backend at a time
2. Balance changes only through recorded transactions
3. Bad data from the store is rejected, never half-applied
4. Advisory content never fails the caller
5. Every mutation is auditable
"""

__version__ = "1.0.0"
__author__ = "SmartFinance Team"
