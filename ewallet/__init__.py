"""
E-Wallet Ledger - Source Package

The on-device ledger behind a demo e-wallet: user accounts, balances
and transactions persisted locally, with password-gated login.

DESIGN PRINCIPLES:
1. The ledger owns balances - nothing else writes them
2. Fail early, fail visibly (typed errors, no silent retries)
3. The transaction log is append-only
4. Every significant action is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "E-Wallet Ledger Team"
