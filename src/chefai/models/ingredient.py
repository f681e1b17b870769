"""Ingredient models shared by detection, merging and generation."""

from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class IngredientCategory(str, Enum):
    """Category tag for a detected ingredient."""

    PRODUCE = "produce"
    DAIRY = "dairy"
    MEAT = "meat"
    SEAFOOD = "seafood"
    GRAINS = "grains"
    SPICES = "spices"
    CONDIMENTS = "condiments"
    OTHER = "other"

    @classmethod
    def parse(cls, value: "str | IngredientCategory | None") -> "IngredientCategory | None":
        """Case-insensitive lookup; unrecognised labels fall back to OTHER."""
        if value is None or isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        if not text:
            return None
        try:
            return cls(text)
        except ValueError:
            return cls.OTHER


class NutritionInfo(BaseModel):
    """Optional nutrition facts attached by the backend."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    calories: int | None = None
    protein: float | None = None
    carbs: float | None = None
    fat: float | None = None
    fiber: float | None = None
    sodium: float | None = None
    sugar: float | None = None
    serving_size: str | None = None


class Ingredient(BaseModel):
    """A single food item, either detected in a photo or typed by the user."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()), description="Opaque identifier")
    name: str = Field(..., min_length=1, description="Free-text label; merge identity key")
    brand_name: str | None = None
    quantity: str | None = None
    unit: str | None = None
    category: IngredientCategory | None = None
    confidence: float | None = Field(
        None, ge=0.0, le=1.0, description="Detection confidence, clamped into 0-1"
    )
    nutrition_info: NutritionInfo | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _default_id(cls, value):
        return str(value) if value else str(uuid4())

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value):
        if value is None:
            return None
        try:
            confidence = float(value)
        except (TypeError, ValueError):
            return None
        if confidence != confidence:  # NaN
            return None
        return min(max(confidence, 0.0), 1.0)

    @field_validator("category", mode="before")
    @classmethod
    def _parse_category(cls, value):
        return IngredientCategory.parse(value)

    @property
    def key(self) -> str:
        """Identity used when merging: trimmed, lower-cased name."""
        return normalize_name(self.name)

    @property
    def rank_confidence(self) -> float:
        """Confidence for ranking; missing counts as 0."""
        return self.confidence if self.confidence is not None else 0.0

    @property
    def display_name(self) -> str:
        if self.brand_name:
            return f"{self.brand_name} {self.name}"
        return self.name

    @property
    def quantity_display(self) -> str | None:
        if self.quantity is None:
            return None
        if self.unit:
            return f"{self.quantity} {self.unit}"
        return self.quantity

    def to_request_payload(self) -> dict:
        """Reduced form sent to the recipe generation endpoint."""
        payload: dict = {"name": self.name}
        if self.quantity is not None:
            payload["quantity"] = self.quantity
        if self.unit is not None:
            payload["unit"] = self.unit
        if self.category is not None:
            payload["category"] = self.category.value
        return payload


def normalize_name(name: str) -> str:
    return name.strip().lower()


def manual_ingredient(name: str) -> Ingredient:
    """Build the ingredient for a user-typed item (full confidence)."""
    return Ingredient(name=name.strip(), confidence=1.0)
