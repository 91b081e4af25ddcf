"""
Recaudo Seguro

Credit lifecycle and payment-route engine for informal microcredit lending:
tiered commissions, daily late-interest accrual, append-only payment ledgers,
collector routes, renewals and refinancing. All financial math uses Decimal.
"""

__version__ = "1.0.0"
