"""Models for the interactive detect -> review -> generate flow."""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from chefai.core.exceptions import ErrorKind

from .ingredient import Ingredient
from .recipe import Recipe


class AnalysisStatus(str, Enum):
    """State of the interactive analysis pipeline."""

    IDLE = "idle"
    DETECTING = "detecting"  # Stage 1 in flight
    REVIEWABLE = "reviewable"  # User reviews detected ingredients
    GENERATING = "generating"  # Stage 2 in flight
    FINISHED = "finished"

    @property
    def display_text(self) -> str:
        return {
            AnalysisStatus.IDLE: "",
            AnalysisStatus.DETECTING: "Detecting ingredients...",
            AnalysisStatus.REVIEWABLE: "Review ingredients",
            AnalysisStatus.GENERATING: "Searching for recipes...",
            AnalysisStatus.FINISHED: "Found recipes!",
        }[self]

    @property
    def is_busy(self) -> bool:
        return self in (AnalysisStatus.DETECTING, AnalysisStatus.GENERATING)


class AnalysisResult(BaseModel):
    """One completed detect(+generate) cycle."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        ser_json_bytes="base64",
        val_json_bytes="base64",
    )

    id: str = Field(default_factory=lambda: str(uuid4()))
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    ingredients: list[Ingredient] = Field(default_factory=list)
    manual_items: list[str] = Field(default_factory=list)
    recipes: list[Recipe] = Field(default_factory=list)
    source_images: list[bytes] = Field(default_factory=list, description="Thumbnails, in capture order")

    @property
    def ingredient_summary(self) -> str:
        count = len(self.ingredients)
        return f"{count} ingredient{'' if count == 1 else 's'}"

    @property
    def all_ingredient_names(self) -> list[str]:
        return [i.name for i in self.ingredients]


class AnalysisSnapshot(BaseModel):
    """Immutable view of the orchestrator published after each transition."""

    model_config = ConfigDict(frozen=True)

    status: AnalysisStatus = AnalysisStatus.IDLE
    progress: float = Field(0.0, ge=0.0, le=1.0)
    ingredients: tuple[Ingredient, ...] = ()
    manual_items: tuple[str, ...] = ()
    result: AnalysisResult | None = None
    warning: str | None = None
    error_kind: ErrorKind | None = None
    error_message: str | None = None
    epoch: int = 0
