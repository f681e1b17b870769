"""User profile subset used as context for recipe generation."""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SkillLevel(str, Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"


class MainGoal(str, Enum):
    LOSE_WEIGHT = "Lose weight"
    GAIN_MUSCLE = "Gain muscle"
    MAINTAIN_WEIGHT = "Maintain weight"
    EAT_HEALTHIER = "Eat healthier"
    SAVE_TIME = "Save time"
    SAVE_MONEY = "Save money"
    EAT_MORE_PROTEIN = "Eat more protein"


class DietaryRestriction(str, Enum):
    VEGETARIAN = "Vegetarian"
    VEGAN = "Vegan"
    PESCATARIAN = "Pescatarian"
    DAIRY_FREE = "Dairy-free"
    GLUTEN_FREE = "Gluten-free"
    NUT_ALLERGY = "Nut allergy"
    NONE = "None"


class TimeAvailability(str, Enum):
    UNDER_10 = "Under 10 minutes"
    TEN_TO_20 = "10-20 minutes"
    TWENTY_TO_40 = "20-40 minutes"
    FORTY_PLUS = "40+ minutes"

    @property
    def max_minutes(self) -> int:
        return {
            TimeAvailability.UNDER_10: 10,
            TimeAvailability.TEN_TO_20: 20,
            TimeAvailability.TWENTY_TO_40: 40,
            TimeAvailability.FORTY_PLUS: 999,  # No limit
        }[self]


class UserProfile(BaseModel):
    """Cooking preferences loaded from the result store."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    user_name: str | None = None
    main_goal: MainGoal | None = None
    cooking_skill_level: SkillLevel | None = None
    dietary_restrictions: list[DietaryRestriction] = Field(default_factory=list)
    time_availability: TimeAvailability | None = None
    cuisine_preferences: list[str] = Field(default_factory=list)

    def to_request_payload(self) -> dict | None:
        """
        Reduce the profile to the fields the generation endpoint accepts.

        Returns:
            Payload dict, or None when nothing useful is set
        """
        payload: dict = {}
        if self.cooking_skill_level is not None:
            payload["cookingSkillLevel"] = self.cooking_skill_level.value
        restrictions = [
            r.value for r in self.dietary_restrictions if r != DietaryRestriction.NONE
        ]
        if restrictions:
            payload["dietaryRestrictions"] = restrictions
        if self.time_availability is not None:
            payload["timeAvailability"] = self.time_availability.max_minutes
        if self.main_goal is not None:
            payload["mainGoal"] = self.main_goal.value
        return payload or None
