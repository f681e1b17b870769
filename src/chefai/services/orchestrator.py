"""
Interactive analysis pipeline.

Drives one analysis through detect -> review -> generate:

1. Fan out one detection call per photo, tolerating per-photo failures
2. Merge the successful results and append the user's manual items
3. Hold the list for review/editing
4. Generate recipes from the confirmed list

State is published as immutable ``AnalysisSnapshot`` objects after every
transition. An epoch counter guards against late results: anything that
resolves after ``cancel()``/``reset()`` is dropped.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Iterable, Sequence

from chefai.core.config import Settings, get_settings
from chefai.core.exceptions import (
    ChefAIError,
    InvalidInputError,
    InvalidStateError,
    NoFoodDetectedError,
)
from chefai.core.publisher import StatePublisher
from chefai.db.store import ResultStore
from chefai.models.analysis import AnalysisResult, AnalysisSnapshot, AnalysisStatus
from chefai.models.ingredient import Ingredient, manual_ingredient, normalize_name
from chefai.models.profile import UserProfile
from chefai.models.recipe import Recipe
from chefai.services.merger import merge_ingredients
from chefai.services.remote.client import RemoteAnalysisClient

logger = logging.getLogger(__name__)


class AnalysisOrchestrator:
    """
    Owns the foreground detect/generate flow for one analysis at a time.

    All methods must be called from the same event loop. State changes
    happen between awaits only, so each transition is applied and
    published as a unit.
    """

    def __init__(
        self,
        client: RemoteAnalysisClient,
        store: ResultStore,
        settings: Settings | None = None,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            client: Transport for detection and generation calls
            store: Persistence for saved analyses and the user profile
            settings: Limits and progress milestones
        """
        self._client = client
        self._store = store
        self._settings = settings or get_settings()

        self._epoch = 0
        self._status = AnalysisStatus.IDLE
        self._progress = 0.0
        self._images: list[bytes] = []
        self._manual_items: list[str] = []
        self._ingredients: list[Ingredient] = []
        self._result: AnalysisResult | None = None
        self._warning: str | None = None
        self._error: ChefAIError | None = None

        self._publisher: StatePublisher[AnalysisSnapshot] = StatePublisher(AnalysisSnapshot())

    # -------------------------------------------------------------------------
    # Observation
    # -------------------------------------------------------------------------

    @property
    def snapshot(self) -> AnalysisSnapshot:
        return self._publisher.current

    @property
    def status(self) -> AnalysisStatus:
        return self._status

    @property
    def progress(self) -> float:
        return self._progress

    @property
    def ingredients(self) -> tuple[Ingredient, ...]:
        return tuple(self._ingredients)

    @property
    def result(self) -> AnalysisResult | None:
        return self._result

    @property
    def warning(self) -> str | None:
        return self._warning

    def subscribe(self, callback: Callable[[AnalysisSnapshot], None]) -> Callable[[], None]:
        return self._publisher.subscribe(callback)

    def updates(self) -> AsyncIterator[AnalysisSnapshot]:
        return self._publisher.updates()

    def _publish(self) -> None:
        self._publisher.publish(
            AnalysisSnapshot(
                status=self._status,
                progress=self._progress,
                ingredients=tuple(self._ingredients),
                manual_items=tuple(self._manual_items),
                result=self._result,
                warning=self._warning,
                error_kind=self._error.kind if self._error else None,
                error_message=self._error.user_message if self._error else None,
                epoch=self._epoch,
            )
        )

    # -------------------------------------------------------------------------
    # Stage 1: detection
    # -------------------------------------------------------------------------

    async def detect(
        self,
        images: Sequence[bytes],
        manual_items: Sequence[str] = (),
    ) -> AnalysisResult | None:
        """
        Detect ingredients in every image concurrently and merge them.

        Args:
            images: Encoded photos; may be empty when manual items are given
            manual_items: User-typed ingredient names

        Returns:
            The pending AnalysisResult, or None if the run was cancelled

        Raises:
            InvalidStateError: A detection or generation is already running
            InvalidInputError: Nothing to analyze, or limits exceeded
            UnauthorizedError, RateLimitedError: Any image hit a systemic failure
            NoFoodDetectedError: Nothing usable came back and no manual items
        """
        if self._status.is_busy:
            raise InvalidStateError("detect ingredients", self._status.value)

        images = list(images)
        items = self._normalize_manual_items(manual_items)
        if not images and not items:
            raise InvalidInputError("Add at least one photo or ingredient")
        if len(images) > self._settings.max_images:
            raise InvalidInputError(
                f"Too many photos ({len(images)}); the limit is {self._settings.max_images}"
            )

        self._epoch += 1
        epoch = self._epoch
        self._images = images
        self._manual_items = items
        self._ingredients = []
        self._result = None
        self._warning = None
        self._error = None
        self._status = AnalysisStatus.DETECTING
        self._progress = self._settings.progress_start
        self._publish()

        logger.info(f"Detecting ingredients in {len(images)} images ({len(items)} manual items)")

        try:
            outcomes = await self._detect_all(images, epoch)
        except Exception as e:
            if epoch != self._epoch:
                logger.info(f"Discarding detection failure from cancelled run: {e}")
                return None
            self._fail_detection(e)
            raise

        if epoch != self._epoch:
            logger.info("Discarding detection results from cancelled run")
            return None

        successes = [o for o in outcomes if not isinstance(o, ChefAIError)]
        failures = [o for o in outcomes if isinstance(o, ChefAIError)]

        if images and not successes and not items:
            error = NoFoodDetectedError(f"All {len(images)} images failed")
            error.details["failures"] = [f.kind.value for f in failures]
            self._fail_detection(error)
            raise error

        ingredients = merge_ingredients(successes)
        known = {i.key for i in ingredients}
        for item in items:
            if normalize_name(item) not in known:
                ingredients.append(manual_ingredient(item))
                known.add(normalize_name(item))

        if not ingredients:
            error = NoFoodDetectedError("No ingredients found in any image")
            self._fail_detection(error)
            raise error

        if failures:
            self._warning = f"{len(successes)} of {len(images)} images analyzed successfully"
            logger.warning(
                f"Partial detection failure: {self._warning} "
                f"({', '.join(f.kind.value for f in failures)})"
            )

        self._ingredients = ingredients
        self._result = AnalysisResult(
            ingredients=ingredients,
            manual_items=items,
            source_images=images,
        )
        self._status = AnalysisStatus.REVIEWABLE
        self._progress = self._settings.progress_midpoint
        self._publish()

        logger.info(f"Detection complete: {len(ingredients)} ingredients ready for review")
        return self._result

    async def _detect_all(
        self,
        images: list[bytes],
        epoch: int,
    ) -> list[list[Ingredient] | ChefAIError]:
        """
        Run one detection per image in parallel.

        Per-image failures come back as error values; batch-fatal errors
        propagate and cancel the remaining calls.
        """
        total = len(images)
        completed = 0

        async def detect_one(index: int, image: bytes) -> list[Ingredient] | ChefAIError:
            nonlocal completed
            try:
                outcome: list[Ingredient] | ChefAIError = await self._client.detect_ingredients(image)
            except ChefAIError as e:
                if e.is_fatal_for_batch:
                    raise
                logger.warning(f"Image {index}: detection failed: {e}")
                outcome = e

            completed += 1
            if epoch == self._epoch:
                self._advance_detection_progress(completed, total)
            return outcome

        tasks = [asyncio.create_task(detect_one(i, image)) for i, image in enumerate(images)]
        try:
            return await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    def _advance_detection_progress(self, completed: int, total: int) -> None:
        start = self._settings.progress_start
        span = self._settings.progress_midpoint - start
        self._progress = max(self._progress, start + span * completed / total)
        self._publish()

    def _fail_detection(self, error: Exception) -> None:
        self._status = AnalysisStatus.IDLE
        self._progress = 0.0
        self._ingredients = []
        self._result = None
        self._error = error if isinstance(error, ChefAIError) else None
        self._publish()
        logger.error(f"Detection failed: {error}")

    # -------------------------------------------------------------------------
    # Review
    # -------------------------------------------------------------------------

    def update_ingredients(self, ingredients: Iterable[Ingredient]) -> None:
        """Replace the reviewed ingredient list (duplicate names are dropped)."""
        self._require_status("edit ingredients", AnalysisStatus.REVIEWABLE)
        unique: dict[str, Ingredient] = {}
        for ingredient in ingredients:
            unique.setdefault(ingredient.key, ingredient)
        self._set_ingredients(list(unique.values()))

    def remove_ingredient(self, ingredient_id: str) -> None:
        self._require_status("edit ingredients", AnalysisStatus.REVIEWABLE)
        self._set_ingredients([i for i in self._ingredients if i.id != ingredient_id])

    def add_manual_item(self, name: str) -> Ingredient | None:
        """
        Add a typed ingredient during review.

        Returns:
            The new ingredient, or None if the name is already listed
        """
        self._require_status("edit ingredients", AnalysisStatus.REVIEWABLE)
        items = self._normalize_manual_items([name])
        if not items:
            raise InvalidInputError("Ingredient name cannot be empty")
        item = items[0]
        if len(self._manual_items) >= self._settings.max_manual_items:
            raise InvalidInputError(
                f"You can add at most {self._settings.max_manual_items} items"
            )
        if any(i.key == normalize_name(item) for i in self._ingredients):
            return None

        ingredient = manual_ingredient(item)
        self._manual_items.append(item)
        self._set_ingredients([*self._ingredients, ingredient])
        return ingredient

    def _set_ingredients(self, ingredients: list[Ingredient]) -> None:
        self._ingredients = ingredients
        if self._result is not None:
            self._result = self._result.model_copy(
                update={"ingredients": ingredients, "manual_items": list(self._manual_items)}
            )
        self._publish()

    # -------------------------------------------------------------------------
    # Stage 2: generation
    # -------------------------------------------------------------------------

    async def generate(
        self,
        profile: UserProfile | None = None,
        excluding: Iterable[Recipe] = (),
    ) -> AnalysisResult | None:
        """
        Generate recipes from the reviewed ingredients.

        Args:
            profile: Cooking preferences; loaded from the store when omitted
            excluding: Recipes already shown (advisory to the backend)

        Returns:
            The result with recipes attached, or None if cancelled meanwhile

        Raises:
            InvalidStateError: Not in the review state
            InvalidInputError: The ingredient list is empty
            ChefAIError: Any transport failure; state returns to review
        """
        self._require_status("generate recipes", AnalysisStatus.REVIEWABLE)
        if not self._ingredients:
            raise InvalidInputError("No ingredients to generate recipes from")

        epoch = self._epoch
        previous_progress = self._progress
        ingredients = list(self._ingredients)

        self._status = AnalysisStatus.GENERATING
        self._progress = max(previous_progress, self._settings.progress_generating)
        self._error = None
        self._publish()

        try:
            if profile is None:
                profile = await self._store.load_user_profile()
            recipes = await self._client.generate_recipes(
                ingredients,
                profile=profile,
                excluding=excluding,
                count=self._settings.recipe_count,
            )
        except Exception as e:
            if epoch != self._epoch:
                logger.info(f"Discarding generation failure from cancelled run: {e}")
                return None
            self._status = AnalysisStatus.REVIEWABLE
            self._progress = previous_progress
            self._error = e if isinstance(e, ChefAIError) else None
            self._publish()
            logger.error(f"Recipe generation failed: {e}")
            raise

        if epoch != self._epoch:
            logger.info("Discarding generated recipes from cancelled run")
            return None

        self._result = self._result.model_copy(
            update={"ingredients": ingredients, "recipes": recipes}
        )
        self._status = AnalysisStatus.FINISHED
        self._progress = 1.0
        self._publish()

        logger.info(f"Generated {len(recipes)} recipes")
        return self._result

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    async def complete(self) -> AnalysisResult:
        """Save the finished analysis (ingredients and recipes)."""
        self._require_status("complete analysis", AnalysisStatus.FINISHED)
        await self._persist(self._result)
        return self._result

    async def save_analysis_only(self) -> AnalysisResult:
        """Save the current ingredients without recipes."""
        self._require_status(
            "save analysis", AnalysisStatus.REVIEWABLE, AnalysisStatus.FINISHED
        )
        result = self._result.model_copy(update={"recipes": []})
        await self._persist(result)
        return result

    async def _persist(self, result: AnalysisResult) -> None:
        analyses = await self._store.load_analyses()
        analyses = [a for a in analyses if a.id != result.id]
        analyses.insert(0, result)
        await self._store.save_analyses(analyses[: self._settings.max_stored_analyses])
        logger.info(
            f"Saved analysis {result.id} with {len(result.ingredients)} ingredients "
            f"and {len(result.recipes)} recipes"
        )

    # -------------------------------------------------------------------------
    # Reset
    # -------------------------------------------------------------------------

    def cancel(self) -> None:
        """Abort whatever is in progress; late results are discarded."""
        logger.info(f"Analysis cancelled in state {self._status.value}")
        self._clear()

    def reset(self) -> None:
        """Return to idle after a completed analysis."""
        self._clear()

    def _clear(self) -> None:
        self._epoch += 1
        self._status = AnalysisStatus.IDLE
        self._progress = 0.0
        self._images = []
        self._manual_items = []
        self._ingredients = []
        self._result = None
        self._warning = None
        self._error = None
        self._publish()

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _require_status(self, operation: str, *allowed: AnalysisStatus) -> None:
        if self._status not in allowed:
            raise InvalidStateError(operation, self._status.value)

    def _normalize_manual_items(self, items: Iterable[str]) -> list[str]:
        """Trim, drop blanks and duplicates, and enforce the configured limits."""
        max_length = self._settings.max_manual_item_length
        seen: set[str] = set()
        result: list[str] = []
        for raw in items:
            item = raw.strip()
            if not item or normalize_name(item) in seen:
                continue
            if len(item) > max_length:
                raise InvalidInputError(
                    f"Item names must be at most {max_length} characters"
                )
            seen.add(normalize_name(item))
            result.append(item)

        if len(result) > self._settings.max_manual_items:
            raise InvalidInputError(
                f"You can add at most {self._settings.max_manual_items} items"
            )
        return result
