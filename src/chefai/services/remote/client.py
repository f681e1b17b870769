"""HTTP client for the ChefAI analysis backend."""

import asyncio
import base64
import logging
from collections.abc import Iterable, Sequence
from functools import lru_cache
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from chefai.core.config import Settings, get_settings
from chefai.core.exceptions import (
    NetworkError,
    NoDataError,
    NoFoodDetectedError,
    RateLimitedError,
    ServerError,
    UnauthorizedError,
    is_no_food_message,
)
from chefai.models.ingredient import Ingredient
from chefai.models.profile import UserProfile
from chefai.models.recipe import Recipe, RecipeSource

logger = logging.getLogger(__name__)

ANALYZE_IMAGE_PATH = "/api/v1/analyze/image"
GENERATE_RECIPES_PATH = "/api/v1/recipes/generate"
HEALTH_PATH = "/health"


# =============================================================================
# Response envelopes
# =============================================================================


class AnalyzeImageResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    ingredients: list[Ingredient] = Field(default_factory=list)
    message: str | None = None


class RecipeBatch(BaseModel):
    """Recipes plus the optional source metadata some responses carry."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = True
    recipes: list[Recipe] = Field(default_factory=list)
    sources: list[RecipeSource] = Field(default_factory=list)
    source_count: int | None = None
    message: str | None = None


# =============================================================================
# Client
# =============================================================================


class RemoteAnalysisClient:
    """
    Stateless transport for ingredient detection and recipe generation.

    Safe to call concurrently: the only shared object is the underlying
    ``httpx.AsyncClient``. No retries happen here.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        *,
        api_key_header: str = "X-API-Key",
        request_timeout: float = 90.0,
        resource_timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: Backend base URL (e.g., "https://api.example.com")
            api_key: Key sent on every request
            api_key_header: Header name carrying the key
            request_timeout: Connect/read/write timeout in seconds
            resource_timeout: Ceiling for a whole request/response cycle
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.api_key_header = api_key_header
        self.request_timeout = request_timeout
        self.resource_timeout = resource_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "RemoteAnalysisClient":
        if not settings.is_api_configured:
            logger.warning("No API key configured; requests are sent without one")
        return cls(
            base_url=settings.api_base_url,
            api_key=settings.api_key,
            api_key_header=settings.api_key_header,
            request_timeout=settings.request_timeout,
            resource_timeout=settings.resource_timeout,
            transport=transport,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.request_timeout),
                headers={self.api_key_header: self.api_key},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "RemoteAnalysisClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------

    async def health_check(self) -> bool:
        """
        Check whether the backend is reachable.

        Returns:
            True on HTTP 200; any failure collapses to False
        """
        try:
            client = await self._get_client()
            response = await asyncio.wait_for(
                client.get(HEALTH_PATH), timeout=self.resource_timeout
            )
            return response.status_code == 200
        except Exception as e:
            logger.warning(f"Backend health check failed: {e}")
            return False

    # -------------------------------------------------------------------------
    # Stage 1: detection
    # -------------------------------------------------------------------------

    async def detect_ingredients(self, image: bytes) -> list[Ingredient]:
        """
        Detect the ingredients visible in one image.

        Args:
            image: Encoded image bytes (JPEG or PNG)

        Returns:
            Ingredients reported by the backend

        Raises:
            UnauthorizedError, RateLimitedError, ServerError,
            NoFoodDetectedError, NetworkError, NoDataError
        """
        image_base64 = base64.b64encode(image).decode("utf-8")
        logger.debug(
            f"Sending image for analysis (size: {len(image)} bytes, "
            f"base64 length: {len(image_base64)})"
        )

        data = await self._post(ANALYZE_IMAGE_PATH, {"image": image_base64})
        response = self._decode(AnalyzeImageResponse, data)

        if not response.success:
            raise _failure_from_message(response.message)

        logger.info(f"Received {len(response.ingredients)} ingredients from backend")
        return response.ingredients

    # -------------------------------------------------------------------------
    # Stage 2: generation
    # -------------------------------------------------------------------------

    async def generate_recipes(
        self,
        ingredients: Sequence[Ingredient],
        profile: UserProfile | None = None,
        excluding: Iterable[Recipe] = (),
        count: int = 5,
    ) -> list[Recipe]:
        """Generate recipes from an ingredient list. See ``generate_recipe_batch``."""
        batch = await self.generate_recipe_batch(
            ingredients, profile=profile, excluding=excluding, count=count
        )
        return batch.recipes

    async def generate_recipe_batch(
        self,
        ingredients: Sequence[Ingredient],
        profile: UserProfile | None = None,
        excluding: Iterable[Recipe] = (),
        count: int = 5,
    ) -> RecipeBatch:
        """
        Generate recipes and keep the response's source metadata.

        Args:
            ingredients: Confirmed ingredient list
            profile: Optional cooking preferences
            excluding: Recipes already shown; advisory to the backend only
            count: Number of recipes requested

        Returns:
            RecipeBatch with recipes and optional source count

        Raises:
            Same failure taxonomy as ``detect_ingredients``
        """
        body = build_generation_body(ingredients, profile, excluding, count)
        logger.info(f"Requesting {count} recipes for {len(ingredients)} ingredients")

        data = await self._post(GENERATE_RECIPES_PATH, body)
        batch = self._decode(RecipeBatch, data)

        if not batch.success:
            raise _failure_from_message(batch.message)

        logger.info(f"Received {len(batch.recipes)} recipes from backend")
        return batch

    # -------------------------------------------------------------------------
    # Transport helpers
    # -------------------------------------------------------------------------

    async def _post(self, path: str, body: dict[str, Any]) -> Any:
        """POST JSON and return the decoded body of a 200 response."""
        client = await self._get_client()
        try:
            response = await asyncio.wait_for(
                client.post(path, json=body), timeout=self.resource_timeout
            )
        except TimeoutError as e:
            raise NetworkError(f"Request to {path} timed out") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"Network error: {e}") from e

        logger.debug(f"Response status for {path}: {response.status_code}")
        _raise_for_status(response)

        if not response.content:
            raise NoDataError()
        try:
            return response.json()
        except ValueError as e:
            raise NoDataError("Failed to parse response", details={"path": path}) from e

    @staticmethod
    def _decode(model: type[BaseModel], data: Any):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise NoDataError("Malformed response from server", details=e.errors()) from e


def build_generation_body(
    ingredients: Sequence[Ingredient],
    profile: UserProfile | None,
    excluding: Iterable[Recipe],
    count: int,
) -> dict[str, Any]:
    """Build the JSON body for the recipe generation endpoint."""
    body: dict[str, Any] = {
        "ingredients": [i.to_request_payload() for i in ingredients],
        "count": count,
    }
    if profile is not None:
        profile_payload = profile.to_request_payload()
        if profile_payload:
            body["userProfile"] = profile_payload
    excluding_ids = [r.id for r in excluding]
    if excluding_ids:
        body["excludingIds"] = excluding_ids
    return body


def _raise_for_status(response: httpx.Response) -> None:
    """Map a non-200 response onto the error taxonomy."""
    status = response.status_code
    if status == 200:
        return
    if status in (401, 403):
        raise UnauthorizedError()
    if status == 429:
        raise RateLimitedError(retry_after=_retry_after(response))

    message = response.text[:500] if response.content else None
    logger.error(f"Error response ({status}): {message}")
    if is_no_food_message(message):
        raise NoFoodDetectedError(message, status_code=status)
    raise ServerError(status, message)


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _failure_from_message(message: str | None) -> ServerError:
    """Error for a 200 response with ``success: false``."""
    if is_no_food_message(message):
        return NoFoodDetectedError(message)
    return ServerError(400, message)


@lru_cache
def get_remote_client() -> RemoteAnalysisClient:
    """
    Get a cached client instance.

    Returns:
        RemoteAnalysisClient configured from settings
    """
    return RemoteAnalysisClient.from_settings(get_settings())
