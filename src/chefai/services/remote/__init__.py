"""Client for the remote analysis backend."""

from .client import RecipeBatch, RemoteAnalysisClient, get_remote_client

__all__ = ["RecipeBatch", "RemoteAnalysisClient", "get_remote_client"]
