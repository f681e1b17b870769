"""Pipeline services."""

from .jobs import BackgroundJobTracker
from .merger import merge_ingredients
from .orchestrator import AnalysisOrchestrator
from .remote import RecipeBatch, RemoteAnalysisClient, get_remote_client

__all__ = [
    "AnalysisOrchestrator",
    "BackgroundJobTracker",
    "RecipeBatch",
    "RemoteAnalysisClient",
    "get_remote_client",
    "merge_ingredients",
]
