"""
Transaction intelligence for a local-first finance tracker.

Two independent engines over the same transaction ledger:

- ``kite_insights.categorization``: prioritized rule matching that proposes
  a category for each transaction.
- ``kite_insights.analytics``: trends, anomalies and forecasts computed from
  transaction history, composed by ``services.orchestrator``.
"""

__version__ = "0.1.0"
