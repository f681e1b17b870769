"""Pytest configuration and fixtures."""

import asyncio
from collections.abc import Sequence

import pytest

from chefai.core.config import Settings
from chefai.db.store import InMemoryResultStore
from chefai.models.ingredient import Ingredient
from chefai.models.recipe import Recipe
from chefai.services.remote.client import RecipeBatch


class FakeRemoteClient:
    """
    Stand-in for RemoteAnalysisClient.

    Detection outcomes are keyed by image bytes; an optional gate per image
    holds the call until the test sets it. Generation outcomes are consumed
    in call order, each with an optional gate.
    """

    def __init__(self) -> None:
        self.detections: dict[bytes, list[Ingredient] | Exception] = {}
        self.detection_gates: dict[bytes, asyncio.Event] = {}
        self.detect_calls: list[bytes] = []

        self.generations: list[tuple[asyncio.Event | None, RecipeBatch | Exception]] = []
        self.generate_calls: list[dict] = []

    def gate(self, image: bytes) -> asyncio.Event:
        event = asyncio.Event()
        self.detection_gates[image] = event
        return event

    def script_generation(
        self,
        outcome: RecipeBatch | list[Recipe] | Exception,
        gate: asyncio.Event | None = None,
    ) -> None:
        if isinstance(outcome, list):
            outcome = RecipeBatch(recipes=outcome)
        self.generations.append((gate, outcome))

    async def detect_ingredients(self, image: bytes) -> list[Ingredient]:
        self.detect_calls.append(image)
        gate = self.detection_gates.get(image)
        if gate is not None:
            await gate.wait()
        outcome = self.detections[image]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def generate_recipe_batch(
        self,
        ingredients: Sequence[Ingredient],
        profile=None,
        excluding=(),
        count: int = 5,
    ) -> RecipeBatch:
        self.generate_calls.append(
            {
                "ingredients": list(ingredients),
                "profile": profile,
                "excluding": list(excluding),
                "count": count,
            }
        )
        gate, outcome = self.generations.pop(0)
        if gate is not None:
            await gate.wait()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def generate_recipes(
        self,
        ingredients: Sequence[Ingredient],
        profile=None,
        excluding=(),
        count: int = 5,
    ) -> list[Recipe]:
        batch = await self.generate_recipe_batch(
            ingredients, profile=profile, excluding=excluding, count=count
        )
        return batch.recipes


@pytest.fixture
def settings() -> Settings:
    """Settings with no cosmetic delays."""
    return Settings(
        _env_file=None,
        api_base_url="http://test",
        api_key="test-key",
        job_step_delay=0,
    )


@pytest.fixture
def fake_client() -> FakeRemoteClient:
    return FakeRemoteClient()


@pytest.fixture
def store() -> InMemoryResultStore:
    return InMemoryResultStore()


@pytest.fixture
def sample_recipes() -> list[Recipe]:
    """Two generated recipes."""
    return [
        Recipe(name="Scrambled Eggs", instructions=["Whisk", "Cook"], tags=["breakfast"]),
        Recipe(name="French Toast", instructions=["Dip", "Fry"], servings=2),
    ]
