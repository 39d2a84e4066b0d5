"""
FraudWatch - Banking operations fraud analytics

A service for banking operations teams that:
- Retrieves time-bucketed customer transaction snapshots
- Detects suspicious activity patterns with a deterministic rule engine
- Scores customer risk on a bounded 0-100 scale
- Assembles aggregate views for the operations dashboard
"""

__version__ = "0.1.0"
