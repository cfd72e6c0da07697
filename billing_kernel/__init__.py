"""
Billing Kernel

Ledger documents and the rules that derive their balances:
- Outstanding balance and payment status derived from amounts
- Credit note cap enforced against the invoice total, tax inclusive
- Typed errors with machine-readable codes
- Structured JSON logging
- Read-only access to the local ledger replica
"""

__version__ = "0.1.0"
