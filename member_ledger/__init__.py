"""
Member Ledger

Savings-group finance ledger with:
- Append-only savings history with running totals
- Contribution, receivable, payable and loan posting
- Monthly interest accrual on outstanding debts
- Recorded, reversible receivable effects (safe delete / restore)
"""

__version__ = "0.1.0"
