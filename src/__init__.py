"""
Dues Ledger - Source Package

A weekly dues ledger for a small members' organization: who paid which
week, what was spent, what was donated, and how each week and month
stands financially.

DESIGN PRINCIPLES:
1. One payment per member per week, latest write wins
2. Every figure is recomputed from stored records, never cached
3. Fail early, fail visibly
4. Every write must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Dues Ledger Team"
