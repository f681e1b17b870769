"""Recipe models returned by the generation stage."""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .ingredient import NutritionInfo

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


def _new_id() -> str:
    return str(uuid4())


class DifficultyLevel(str, Enum):
    """Recipe difficulty."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    EXPERT = "expert"


# Free-text difficulty labels the backend is known to produce
_DIFFICULTY_ALIASES = {
    "easy": DifficultyLevel.EASY,
    "beginner": DifficultyLevel.EASY,
    "simple": DifficultyLevel.EASY,
    "medium": DifficultyLevel.MEDIUM,
    "intermediate": DifficultyLevel.MEDIUM,
    "hard": DifficultyLevel.HARD,
    "difficult": DifficultyLevel.HARD,
    "advanced": DifficultyLevel.HARD,
    "expert": DifficultyLevel.EXPERT,
    "professional": DifficultyLevel.EXPERT,
}


class RecipeStep(BaseModel):
    """A detailed instruction step."""

    model_config = _CAMEL

    id: str = Field(default_factory=_new_id)
    step_number: int
    instruction: str
    duration: int | None = Field(None, ge=0, description="Seconds")
    technique: str | None = None
    gif_url: str | None = Field(None, alias="gifURL")
    video_url: str | None = Field(None, alias="videoURL")
    tips: list[str] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def _default_id(cls, value):
        return str(value) if value else _new_id()

    @field_validator("tips", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return value or []


class RecipeIngredient(BaseModel):
    """An ingredient requirement within a recipe."""

    model_config = _CAMEL

    id: str = Field(default_factory=_new_id)
    name: str
    amount: str = ""
    unit: str | None = None
    is_optional: bool = False
    substitutes: list[str] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def _default_id(cls, value):
        return str(value) if value else _new_id()

    @field_validator("is_optional", mode="before")
    @classmethod
    def _none_as_false(cls, value):
        return bool(value)

    @field_validator("substitutes", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return value or []

    @property
    def display_text(self) -> str:
        text = ""
        if self.amount:
            text += self.amount
            if self.unit:
                text += f" {self.unit}"
            text += " "
        text += self.name
        if self.is_optional:
            text += " (optional)"
        return text


class RecipeSource(BaseModel):
    """Attribution for a recipe found on the web."""

    model_config = _CAMEL

    name: str
    url: str | None = None
    author: str | None = None


class Recipe(BaseModel):
    """
    A generated dish.

    Equality used by "already seen" checks is by ``id``.
    """

    model_config = _CAMEL

    id: str = Field(default_factory=_new_id)
    name: str
    description: str | None = None
    instructions: list[str] = Field(default_factory=list)
    detailed_steps: list[RecipeStep] = Field(default_factory=list)
    ingredients: list[RecipeIngredient] = Field(default_factory=list)
    image_url: str | None = Field(None, alias="imageURL")
    tags: list[str] = Field(default_factory=list)
    prep_time: int | None = Field(None, ge=0, description="Minutes")
    cook_time: int | None = Field(None, ge=0, description="Minutes")
    servings: int | None = Field(None, ge=0)
    difficulty: DifficultyLevel | None = None
    cuisine_type: str | None = None
    nutrition_per_serving: NutritionInfo | None = None
    tips: list[str] = Field(default_factory=list)
    source: RecipeSource | None = None
    date_generated: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("id", mode="before")
    @classmethod
    def _default_id(cls, value):
        return str(value) if value else _new_id()

    @field_validator("detailed_steps", "tags", "tips", "instructions", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return value or []

    @field_validator("date_generated", mode="before")
    @classmethod
    def _default_date(cls, value):
        return value or datetime.now(UTC)

    @field_validator("difficulty", mode="before")
    @classmethod
    def _parse_difficulty(cls, value):
        if value is None or isinstance(value, DifficultyLevel):
            return value
        return _DIFFICULTY_ALIASES.get(str(value).strip().lower(), DifficultyLevel.EASY)

    @property
    def total_time(self) -> int | None:
        if self.prep_time is None or self.cook_time is None:
            return None
        return self.prep_time + self.cook_time

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Recipe):
            return self.id == other.id
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.id)
