"""Models for background recipe-generation jobs."""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from chefai.core.exceptions import ErrorKind

from .ingredient import Ingredient
from .recipe import Recipe, RecipeSource


class JobStatus(str, Enum):
    """Lifecycle of a background job."""

    QUEUED = "queued"
    SEARCHING = "searching"
    SOURCES_FOUND = "sourcesFound"
    CALCULATING = "calculating"
    FINISHED = "finished"
    ERROR = "error"

    @property
    def is_processing(self) -> bool:
        return self in (JobStatus.QUEUED, JobStatus.SEARCHING, JobStatus.CALCULATING)

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.FINISHED, JobStatus.ERROR)

    @property
    def step(self) -> int:
        """Position in the forward pipeline; terminal states share the last step."""
        return _STEPS[self]

    @property
    def display_text(self) -> str:
        return {
            JobStatus.QUEUED: "Queued",
            JobStatus.SEARCHING: "Searching for recipes...",
            JobStatus.SOURCES_FOUND: "Sources found",
            JobStatus.CALCULATING: "Calculating nutrition...",
            JobStatus.FINISHED: "Recipes ready",
            JobStatus.ERROR: "Something went wrong",
        }[self]


_STEPS = {
    JobStatus.QUEUED: 0,
    JobStatus.SEARCHING: 1,
    JobStatus.SOURCES_FOUND: 2,
    JobStatus.CALCULATING: 3,
    JobStatus.FINISHED: 4,
    JobStatus.ERROR: 4,
}


class Job(BaseModel):
    """A background-tracked generation run, replaced wholesale on each update."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        ser_json_bytes="base64",
        val_json_bytes="base64",
    )

    id: str = Field(default_factory=lambda: str(uuid4()))
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    analysis_id: str | None = None
    ingredients: list[Ingredient] = Field(default_factory=list)
    thumbnail: bytes | None = None
    status: JobStatus = JobStatus.QUEUED
    source_count: int = Field(0, ge=0)
    sources: list[RecipeSource] = Field(default_factory=list)
    recipes: list[Recipe] = Field(default_factory=list)
    error_kind: ErrorKind | None = None
    error_message: str | None = None
    completed_at: datetime | None = None


class JobsSnapshot(BaseModel):
    """Active and completed jobs, newest first."""

    model_config = ConfigDict(frozen=True)

    active: tuple[Job, ...] = ()
    completed: tuple[Job, ...] = ()
