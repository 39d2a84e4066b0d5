"""
FastAPI dependencies for the API.

Provides the snapshot source and the refresh scheduler created at startup.
"""

from typing import Annotated

from fastapi import Depends, Request

from fraudwatch.ingestion.base_adapter import BaseAdapter
from fraudwatch.refresh.scheduler import RefreshScheduler


def get_source(request: Request) -> BaseAdapter:
    """Get the snapshot source from app state."""
    return request.app.state.source


def get_scheduler(request: Request) -> RefreshScheduler:
    """Get the refresh scheduler from app state."""
    return request.app.state.scheduler


# Type aliases for dependency injection
Source = Annotated[BaseAdapter, Depends(get_source)]
Scheduler = Annotated[RefreshScheduler, Depends(get_scheduler)]
