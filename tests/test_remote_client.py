"""Unit tests for the remote analysis client."""

import base64
import json
import logging

import httpx
import pytest

from chefai.core.exceptions import (
    ErrorKind,
    NetworkError,
    NoDataError,
    NoFoodDetectedError,
    RateLimitedError,
    ServerError,
    UnauthorizedError,
)
from chefai.models.ingredient import Ingredient, IngredientCategory
from chefai.models.profile import DietaryRestriction, SkillLevel, TimeAvailability, UserProfile
from chefai.models.recipe import DifficultyLevel, Recipe
from chefai.services.remote.client import RemoteAnalysisClient

# Sample test image (1x1 red pixel PNG)
TINY_PNG_BASE64 = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mP8z8DwHwAFBQIAX8jx0gAAAABJRU5ErkJggg=="
)
TINY_PNG_BYTES = base64.b64decode(TINY_PNG_BASE64)


def make_client(handler) -> RemoteAnalysisClient:
    return RemoteAnalysisClient(
        base_url="http://test/",
        api_key="secret",
        transport=httpx.MockTransport(handler),
    )


class TestDetectIngredients:
    """Tests for detect_ingredients."""

    @pytest.mark.asyncio
    async def test_success(self):
        """Test a successful analysis request."""
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["path"] = request.url.path
            captured["api_key"] = request.headers.get("X-API-Key")
            captured["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "ingredients": [
                        {"id": "a1", "name": "Egg", "confidence": 0.9, "category": "Dairy"},
                        {"name": "Basil", "brandName": "Fresh", "category": "Pantry Staples"},
                    ],
                },
            )

        client = make_client(handler)
        ingredients = await client.detect_ingredients(TINY_PNG_BYTES)

        assert captured["path"] == "/api/v1/analyze/image"
        assert captured["api_key"] == "secret"
        assert captured["body"] == {"image": base64.b64encode(TINY_PNG_BYTES).decode()}
        assert [i.name for i in ingredients] == ["Egg", "Basil"]
        assert ingredients[0].id == "a1"
        assert ingredients[0].category == IngredientCategory.DAIRY
        assert ingredients[1].id  # generated
        assert ingredients[1].brand_name == "Fresh"
        assert ingredients[1].category == IngredientCategory.OTHER
        await client.close()

    @pytest.mark.asyncio
    async def test_out_of_range_confidence_is_clamped(self):
        """Test one bad confidence does not discard the whole response."""
        client = make_client(
            lambda request: httpx.Response(
                200,
                json={
                    "success": True,
                    "ingredients": [
                        {"name": "egg", "confidence": 0.9},
                        {"name": "milk", "confidence": 92},
                        {"name": "salt", "confidence": -1},
                    ],
                },
            )
        )

        ingredients = await client.detect_ingredients(TINY_PNG_BYTES)

        assert [(i.name, i.confidence) for i in ingredients] == [
            ("egg", 0.9),
            ("milk", 1.0),
            ("salt", 0.0),
        ]

    @pytest.mark.asyncio
    async def test_unauthorized(self):
        """Test 401 maps to UnauthorizedError."""
        client = make_client(lambda request: httpx.Response(401, text="bad key"))

        with pytest.raises(UnauthorizedError) as exc_info:
            await client.detect_ingredients(TINY_PNG_BYTES)

        assert exc_info.value.kind == ErrorKind.UNAUTHORIZED
        assert "API key" in exc_info.value.user_message

    @pytest.mark.asyncio
    async def test_rate_limited_with_retry_after(self):
        """Test 429 carries the Retry-After value."""
        client = make_client(
            lambda request: httpx.Response(429, headers={"Retry-After": "30"})
        )

        with pytest.raises(RateLimitedError) as exc_info:
            await client.detect_ingredients(TINY_PNG_BYTES)

        assert exc_info.value.retry_after == 30.0
        assert "30 seconds" in exc_info.value.user_message

    @pytest.mark.asyncio
    async def test_server_error(self):
        """Test non-200 responses map to ServerError with the body."""
        client = make_client(lambda request: httpx.Response(500, text="boom"))

        with pytest.raises(ServerError) as exc_info:
            await client.detect_ingredients(TINY_PNG_BYTES)

        assert exc_info.value.status_code == 500
        assert exc_info.value.kind == ErrorKind.SERVER_ERROR
        assert exc_info.value.user_message == "boom"

    @pytest.mark.asyncio
    async def test_no_food_detected_from_success_false(self):
        """Test success=false with the no-food marker becomes NoFoodDetectedError."""
        client = make_client(
            lambda request: httpx.Response(
                200,
                json={"success": False, "ingredients": [], "message": "No food detected in image"},
            )
        )

        with pytest.raises(NoFoodDetectedError) as exc_info:
            await client.detect_ingredients(TINY_PNG_BYTES)

        assert exc_info.value.kind == ErrorKind.NO_FOOD_DETECTED
        assert isinstance(exc_info.value, ServerError)

    @pytest.mark.asyncio
    async def test_no_food_detected_from_error_status(self):
        """Test the marker is recognised in error bodies too."""
        client = make_client(
            lambda request: httpx.Response(422, json={"error": "noFoodDetected"})
        )

        with pytest.raises(NoFoodDetectedError):
            await client.detect_ingredients(TINY_PNG_BYTES)

    @pytest.mark.asyncio
    async def test_success_false_generic(self):
        """Test success=false without the marker is a plain ServerError."""
        client = make_client(
            lambda request: httpx.Response(200, json={"success": False, "message": "model overloaded"})
        )

        with pytest.raises(ServerError) as exc_info:
            await client.detect_ingredients(TINY_PNG_BYTES)

        assert not isinstance(exc_info.value, NoFoodDetectedError)
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_connection_error(self):
        """Test transport failures map to NetworkError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        client = make_client(handler)

        with pytest.raises(NetworkError) as exc_info:
            await client.detect_ingredients(TINY_PNG_BYTES)

        assert exc_info.value.kind == ErrorKind.NETWORK_ERROR

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Test timeouts surface as NetworkError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client = make_client(handler)

        with pytest.raises(NetworkError):
            await client.detect_ingredients(TINY_PNG_BYTES)

    @pytest.mark.asyncio
    async def test_malformed_body(self):
        """Test undecodable bodies map to NoDataError."""
        client = make_client(lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(NoDataError):
            await client.detect_ingredients(TINY_PNG_BYTES)

    @pytest.mark.asyncio
    async def test_empty_body(self):
        """Test an empty 200 body maps to NoDataError."""
        client = make_client(lambda request: httpx.Response(200))

        with pytest.raises(NoDataError) as exc_info:
            await client.detect_ingredients(TINY_PNG_BYTES)

        assert exc_info.value.kind == ErrorKind.NO_DATA


class TestGenerateRecipes:
    """Tests for recipe generation."""

    @pytest.mark.asyncio
    async def test_request_body_and_parsing(self):
        """Test the request shape and lenient recipe decoding."""
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["path"] = request.url.path
            captured["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "recipes": [
                        {
                            "id": "r1",
                            "name": "Omelette",
                            "instructions": ["Beat eggs", "Cook"],
                            "ingredients": [{"name": "egg", "amount": "2", "isOptional": None}],
                            "difficulty": "Beginner",
                            "prepTime": 5,
                            "cookTime": 10,
                            "tags": None,
                            "imageURL": "http://img/omelette.png",
                        },
                        {"name": "Crepes", "instructions": [], "difficulty": "Advanced"},
                    ],
                },
            )

        client = make_client(handler)
        profile = UserProfile(
            cooking_skill_level=SkillLevel.BEGINNER,
            dietary_restrictions=[DietaryRestriction.VEGETARIAN, DietaryRestriction.NONE],
            time_availability=TimeAvailability.TEN_TO_20,
        )
        recipes = await client.generate_recipes(
            [
                Ingredient(name="egg", quantity="2", unit="pcs", category="dairy"),
                Ingredient(name="salt"),
            ],
            profile=profile,
            excluding=[Recipe(id="old-1", name="Old")],
            count=3,
        )

        assert captured["path"] == "/api/v1/recipes/generate"
        assert captured["body"] == {
            "ingredients": [
                {"name": "egg", "quantity": "2", "unit": "pcs", "category": "dairy"},
                {"name": "salt"},
            ],
            "count": 3,
            "userProfile": {
                "cookingSkillLevel": "Beginner",
                "dietaryRestrictions": ["Vegetarian"],
                "timeAvailability": 20,
            },
            "excludingIds": ["old-1"],
        }

        assert [r.name for r in recipes] == ["Omelette", "Crepes"]
        omelette = recipes[0]
        assert omelette.id == "r1"
        assert omelette.difficulty == DifficultyLevel.EASY
        assert omelette.total_time == 15
        assert omelette.tags == []
        assert omelette.image_url == "http://img/omelette.png"
        assert omelette.ingredients[0].is_optional is False
        assert recipes[1].difficulty == DifficultyLevel.HARD

    @pytest.mark.asyncio
    async def test_minimal_body(self):
        """Test empty profile and exclusions are omitted."""
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True, "recipes": []})

        client = make_client(handler)
        await client.generate_recipes([Ingredient(name="rice")], profile=UserProfile())

        assert captured["body"] == {"ingredients": [{"name": "rice"}], "count": 5}

    @pytest.mark.asyncio
    async def test_batch_keeps_source_metadata(self):
        """Test generate_recipe_batch exposes sourceCount and sources."""
        client = make_client(
            lambda request: httpx.Response(
                200,
                json={
                    "success": True,
                    "recipes": [{"name": "Soup"}],
                    "sources": [{"name": "Serious Eats", "url": "http://se"}],
                    "sourceCount": 7,
                },
            )
        )

        batch = await client.generate_recipe_batch([Ingredient(name="leek")])

        assert batch.source_count == 7
        assert batch.sources[0].name == "Serious Eats"
        assert batch.recipes[0].name == "Soup"

    @pytest.mark.asyncio
    async def test_failure(self):
        """Test generation errors use the same taxonomy."""
        client = make_client(
            lambda request: httpx.Response(200, json={"success": False, "message": "try later"})
        )

        with pytest.raises(ServerError) as exc_info:
            await client.generate_recipes([Ingredient(name="leek")])

        assert exc_info.value.user_message == "try later"


class TestHealthCheck:
    """Tests for health_check."""

    @pytest.mark.asyncio
    async def test_healthy(self):
        """Test 200 from /health is healthy."""
        paths = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.path)
            return httpx.Response(200, json={"status": "ok"})

        client = make_client(handler)

        assert await client.health_check() is True
        assert paths == ["/health"]

    @pytest.mark.asyncio
    async def test_unhealthy_status(self):
        """Test non-200 is unhealthy."""
        client = make_client(lambda request: httpx.Response(503))

        assert await client.health_check() is False

    @pytest.mark.asyncio
    async def test_never_raises(self):
        """Test transport errors collapse to False."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        client = make_client(handler)

        assert await client.health_check() is False

    @pytest.mark.asyncio
    async def test_unexpected_transport_error(self):
        """Test non-httpx exceptions from the transport also collapse to False."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise RuntimeError("boom")

        client = make_client(handler)

        assert await client.health_check() is False

    @pytest.mark.asyncio
    async def test_unencodable_api_key(self):
        """Test a key that cannot be sent as a header yields False."""
        client = RemoteAnalysisClient(
            base_url="http://test",
            api_key="clé",
            transport=httpx.MockTransport(lambda request: httpx.Response(200)),
        )

        assert await client.health_check() is False


class TestClientLifecycle:
    """Tests for client construction and cleanup."""

    def test_from_settings(self, settings):
        """Test settings are carried over."""
        client = RemoteAnalysisClient.from_settings(settings)

        assert client.base_url == "http://test"
        assert client.api_key == "test-key"
        assert client.request_timeout == 90.0
        assert client.resource_timeout == 120.0

    def test_from_settings_warns_without_key(self, settings, caplog):
        """Test a missing API key is logged when the client is built."""
        settings = settings.model_copy(update={"api_key": ""})

        with caplog.at_level(logging.WARNING, logger="chefai.services.remote.client"):
            client = RemoteAnalysisClient.from_settings(settings)

        assert not settings.is_api_configured
        assert client.api_key == ""
        assert "No API key configured" in caplog.text

    def test_from_settings_quiet_with_key(self, settings, caplog):
        """Test no warning is logged when a key is present."""
        with caplog.at_level(logging.WARNING, logger="chefai.services.remote.client"):
            RemoteAnalysisClient.from_settings(settings)

        assert settings.is_api_configured
        assert "No API key configured" not in caplog.text

    @pytest.mark.asyncio
    async def test_context_manager_closes(self):
        """Test the async context manager closes the HTTP client."""
        async with make_client(lambda request: httpx.Response(200)) as client:
            await client.health_check()
            assert client._client is not None

        assert client._client is None
