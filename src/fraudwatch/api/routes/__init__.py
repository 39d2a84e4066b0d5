"""
API route modules.
"""

from fraudwatch.api.routes.fraud import router as fraud_router

__all__ = [
    "fraud_router",
]
