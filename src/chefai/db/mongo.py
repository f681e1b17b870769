"""MongoDB-backed result store using the Motor async driver."""

import json
import logging
from collections.abc import Sequence
from typing import Any, TypeVar

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pydantic import BaseModel

from chefai.core.config import Settings, get_settings
from chefai.models.analysis import AnalysisResult
from chefai.models.job import Job
from chefai.models.profile import UserProfile

from .store import ResultStore

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

PROFILE_DOCUMENT_ID = "current"


class MongoResultStore(ResultStore):
    """
    Stores analyses and jobs as ordered documents.

    Each save rewrites the collection; a ``position`` field keeps the
    caller's ordering (newest first).
    """

    def __init__(self, db: AsyncIOMotorDatabase, max_stored_analyses: int = 50):
        """
        Initialize the store with a database instance.

        Args:
            db: Motor database instance
            max_stored_analyses: Analyses beyond this count are dropped on save
        """
        self._db = db
        self.max_stored_analyses = max_stored_analyses

    @property
    def analyses(self) -> AsyncIOMotorCollection:
        return self._db["analyses"]

    @property
    def jobs(self) -> AsyncIOMotorCollection:
        return self._db["jobs"]

    @property
    def profiles(self) -> AsyncIOMotorCollection:
        return self._db["profiles"]

    async def load_analyses(self) -> list[AnalysisResult]:
        return await self._load_all(self.analyses, AnalysisResult)

    async def save_analyses(self, analyses: Sequence[AnalysisResult]) -> None:
        limited = list(analyses)[: self.max_stored_analyses]
        await self._replace_all(self.analyses, limited)
        logger.info(f"Saved {len(limited)} analyses")

    async def load_user_profile(self) -> UserProfile | None:
        doc = await self.profiles.find_one({"_id": PROFILE_DOCUMENT_ID})
        return _to_model(UserProfile, doc) if doc else None

    async def save_user_profile(self, profile: UserProfile) -> None:
        document = _to_document(profile)
        document["_id"] = PROFILE_DOCUMENT_ID
        await self.profiles.replace_one({"_id": PROFILE_DOCUMENT_ID}, document, upsert=True)

    async def load_jobs(self) -> list[Job]:
        return await self._load_all(self.jobs, Job)

    async def save_jobs(self, jobs: Sequence[Job]) -> None:
        await self._replace_all(self.jobs, jobs)

    async def _load_all(self, collection: AsyncIOMotorCollection, model: type[T]) -> list[T]:
        cursor = collection.find({}).sort("position", 1)
        docs = await cursor.to_list(length=None)
        return [_to_model(model, doc) for doc in docs]

    async def _replace_all(
        self,
        collection: AsyncIOMotorCollection,
        items: Sequence[BaseModel],
    ) -> None:
        documents = []
        for position, item in enumerate(items):
            document = _to_document(item)
            document["position"] = position
            documents.append(document)

        await collection.delete_many({})
        if documents:
            await collection.insert_many(documents)


def _to_document(model: BaseModel) -> dict[str, Any]:
    """JSON-compatible document (bytes as base64, datetimes as ISO strings)."""
    return json.loads(model.model_dump_json(by_alias=True))


def _to_model(model: type[T], doc: dict[str, Any]) -> T:
    """Convert a MongoDB document back to its Pydantic model."""
    data = {k: v for k, v in doc.items() if k not in ("_id", "position")}
    return model.model_validate_json(json.dumps(data))


def create_mongo_store(settings: Settings | None = None) -> MongoResultStore:
    """
    Build a store from settings.

    Args:
        settings: Optional settings instance

    Returns:
        MongoResultStore bound to the configured database
    """
    settings = settings or get_settings()
    client = AsyncIOMotorClient(settings.mongo_uri)
    return MongoResultStore(
        client[settings.db_name],
        max_stored_analyses=settings.max_stored_analyses,
    )
