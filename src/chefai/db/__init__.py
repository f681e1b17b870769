"""Persistence for analyses, jobs and the user profile."""

from .mongo import MongoResultStore, create_mongo_store
from .store import InMemoryResultStore, ResultStore

__all__ = ["InMemoryResultStore", "MongoResultStore", "ResultStore", "create_mongo_store"]
