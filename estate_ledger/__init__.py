"""
Estate Ledger - Source Package

Company housing ledger for contract workers: properties, tenants and
payroll-linked rent deductions, with monthly closes.

DESIGN PRINCIPLES:
1. Reports are derived, never stored, until a month is closed
2. A closed month never changes
3. Every persistence failure is visible to the operator
4. Every multi-collection write is all-or-nothing
5. Storage layer is swappable
"""

__version__ = "8.0.0"
__author__ = "Estate Ledger Team"
