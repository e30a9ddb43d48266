"""
SpendWise Ledger - Source Package

A personal-finance ledger that records expense transactions, derives
recurring-obligation instances from user-defined rules and aggregates
both into summaries.

DESIGN PRINCIPLES:
1. The store has exactly one in-memory owner per session
2. Engine, merger and aggregation are pure functions over snapshots
3. Persistence is a gateway behind a swappable interface
4. Every mutation is auditable
5. Imports never destroy local data
"""

__version__ = "1.0.0"
__author__ = "SpendWise Team"
