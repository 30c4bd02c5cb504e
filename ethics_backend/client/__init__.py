"""
Client-side state for application review screens.

Framework-free: only depends on pydantic and httpx, so it runs inside
workers, scripts and tests without a Django runtime.
"""

from ethics_backend.client.listing import ApplicationListFeed
from ethics_backend.client.listing import ApplicationPage
from ethics_backend.client.reconciler import merge
from ethics_backend.client.session import ApplicationSession

__all__ = ["merge", "ApplicationSession", "ApplicationListFeed", "ApplicationPage"]
