"""
Periodic and on-demand refresh of fraud analytics.
"""

from fraudwatch.refresh.scheduler import (
    RefreshJob,
    RefreshRequest,
    RefreshScheduler,
    RefreshTrigger,
)

__all__ = [
    "RefreshJob",
    "RefreshRequest",
    "RefreshScheduler",
    "RefreshTrigger",
]
