"""
Cash Ledger - Source Package

Ledger aggregation and recurring schedule engine for a personal
cash position tracker.

DESIGN PRINCIPLES:
1. One balance, derived - never stored
2. Every caller identity is explicit
3. A recurring rule fires at most once per guarded interval
4. Every ledger-affecting step is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Cash Ledger Team"
