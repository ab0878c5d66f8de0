"""
Recurring Cycles - Source Package

The cycle engine behind a personal finance tracker's recurring
transactions: subscriptions, bills, income and other repeating
obligations.

DESIGN PRINCIPLES:
1. Cycles are computed, never stored
2. What the user pinned always wins
3. A failed activity fetch degrades, it never blanks the schedule
4. Every user mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Recurring Cycles Team"
