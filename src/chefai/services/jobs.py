"""
Background recipe-generation jobs.

A job runs the generation stage without any screen waiting on it. Each
job owns one asyncio task; jobs never share state, so one job's failure
cannot affect another. Job records are frozen and replaced wholesale, and
the active/completed collections are republished as tuples after every
change, so readers never observe a partially updated job.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Iterable, Sequence
from datetime import UTC, datetime
from typing import Any

from chefai.core.config import Settings, get_settings
from chefai.core.exceptions import ChefAIError, InvalidInputError, InvalidStateError
from chefai.core.publisher import StatePublisher
from chefai.db.store import ResultStore
from chefai.models.ingredient import Ingredient
from chefai.models.job import Job, JobsSnapshot, JobStatus
from chefai.models.profile import UserProfile
from chefai.models.recipe import Recipe
from chefai.services.remote.client import RemoteAnalysisClient

logger = logging.getLogger(__name__)

MAX_PLACEHOLDER_SOURCES = 12


def placeholder_source_count(ingredients: Sequence[Ingredient]) -> int:
    """Source count shown before the backend reports the real one."""
    return min(3 + len(ingredients), MAX_PLACEHOLDER_SOURCES)


class BackgroundJobTracker:
    """
    Runs and tracks background generation jobs.

    Job lifecycle: queued -> searching -> sourcesFound -> calculating ->
    finished, with error reachable from any non-terminal state. The
    intermediate states are advanced optimistically while the request is
    outstanding and never influence the final outcome.
    """

    def __init__(
        self,
        client: RemoteAnalysisClient,
        store: ResultStore | None = None,
        settings: Settings | None = None,
    ) -> None:
        """
        Initialize the tracker.

        Args:
            client: Transport used for generation calls
            store: Optional persistence for job records
            settings: Recipe count and cosmetic step delay
        """
        self._client = client
        self._store = store
        self._settings = settings or get_settings()

        self._active: list[Job] = []
        self._completed: list[Job] = []
        self._tasks: dict[str, asyncio.Task] = {}
        self._pending_saves: set[asyncio.Task] = set()
        self._save_lock = asyncio.Lock()

        self._publisher: StatePublisher[JobsSnapshot] = StatePublisher(JobsSnapshot())

    # -------------------------------------------------------------------------
    # Observation
    # -------------------------------------------------------------------------

    @property
    def snapshot(self) -> JobsSnapshot:
        return self._publisher.current

    @property
    def active_jobs(self) -> tuple[Job, ...]:
        return self._publisher.current.active

    @property
    def completed_jobs(self) -> tuple[Job, ...]:
        return self._publisher.current.completed

    def get(self, job_id: str) -> Job | None:
        """Find a job in either collection."""
        snapshot = self._publisher.current
        for job in (*snapshot.active, *snapshot.completed):
            if job.id == job_id:
                return job
        return None

    def subscribe(self, callback: Callable[[JobsSnapshot], None]) -> Callable[[], None]:
        return self._publisher.subscribe(callback)

    def updates(self) -> AsyncIterator[JobsSnapshot]:
        return self._publisher.updates()

    def _publish(self) -> None:
        self._publisher.publish(
            JobsSnapshot(active=tuple(self._active), completed=tuple(self._completed))
        )

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------

    def submit(
        self,
        ingredients: Sequence[Ingredient],
        thumbnail: bytes | None = None,
        *,
        analysis_id: str | None = None,
        profile: UserProfile | None = None,
        excluding: Iterable[Recipe] = (),
    ) -> str:
        """
        Queue a generation job and start it in the background.

        Must be called from within the running event loop. Returns
        immediately.

        Args:
            ingredients: Seed ingredient list (detection already done)
            thumbnail: Optional image shown alongside the job
            analysis_id: Analysis the job was started from, if any
            profile: Optional cooking preferences
            excluding: Recipes already shown (advisory to the backend)

        Returns:
            The new job's id
        """
        if not ingredients:
            raise InvalidInputError("No ingredients to generate recipes from")

        job = Job(
            analysis_id=analysis_id,
            ingredients=list(ingredients),
            thumbnail=thumbnail,
        )
        self._active.insert(0, job)
        self._publish()

        self._start(job, profile, list(excluding))
        logger.info(f"Started job {job.id} with {len(job.ingredients)} ingredients")
        return job.id

    def _start(
        self,
        job: Job,
        profile: UserProfile | None,
        excluding: list[Recipe],
    ) -> None:
        task = asyncio.get_running_loop().create_task(self._run(job, profile, excluding))
        self._tasks[job.id] = task
        task.add_done_callback(lambda _: self._tasks.pop(job.id, None))

    # -------------------------------------------------------------------------
    # Job execution
    # -------------------------------------------------------------------------

    async def _run(
        self,
        job: Job,
        profile: UserProfile | None,
        excluding: list[Recipe],
    ) -> None:
        self._advance(job.id, JobStatus.SEARCHING)
        await self._persist()

        ticker = asyncio.create_task(self._tick(job))
        try:
            batch = await self._client.generate_recipe_batch(
                job.ingredients,
                profile=profile,
                excluding=excluding,
                count=self._settings.recipe_count,
            )
        except Exception as e:
            if isinstance(e, ChefAIError):
                logger.warning(f"Job {job.id} failed: {e}")
                changes = {"error_kind": e.kind, "error_message": e.user_message}
            else:
                logger.exception(f"Job {job.id} failed unexpectedly: {e}")
                changes = {"error_message": str(e) or type(e).__name__}
            self._finish(job.id, JobStatus.ERROR, **changes)
            await self._persist()
            return
        finally:
            ticker.cancel()

        source_count = batch.source_count
        if source_count is None:
            source_count = placeholder_source_count(job.ingredients)
        self._advance(job.id, JobStatus.SOURCES_FOUND)
        self._update(job.id, source_count=source_count, sources=batch.sources)
        self._advance(job.id, JobStatus.CALCULATING)
        self._finish(job.id, JobStatus.FINISHED, recipes=batch.recipes)
        await self._persist()
        logger.info(f"Job {job.id} completed with {len(batch.recipes)} recipes")

    async def _tick(self, job: Job) -> None:
        """Move the job through the cosmetic states while the call is outstanding."""
        delay = self._settings.job_step_delay
        if delay <= 0:
            return
        await asyncio.sleep(delay)
        self._advance(
            job.id,
            JobStatus.SOURCES_FOUND,
            source_count=placeholder_source_count(job.ingredients),
        )
        await asyncio.sleep(delay)
        self._advance(job.id, JobStatus.CALCULATING)

    def _index(self, job_id: str) -> int | None:
        for index, job in enumerate(self._active):
            if job.id == job_id:
                return index
        return None

    def _update(self, job_id: str, **changes: Any) -> None:
        index = self._index(job_id)
        if index is None:
            return
        self._active[index] = self._active[index].model_copy(update=changes)
        self._publish()

    def _advance(self, job_id: str, status: JobStatus, **changes: Any) -> None:
        """Move an active job forward; requests to stay or go back are ignored."""
        index = self._index(job_id)
        if index is None or status.step <= self._active[index].status.step:
            return
        self._update(job_id, status=status, **changes)
        logger.debug(f"Job {job_id}: {status.value}")

    def _finish(self, job_id: str, status: JobStatus, **changes: Any) -> None:
        """Apply a terminal status and move the job to the completed collection."""
        index = self._index(job_id)
        if index is None:
            return
        job = self._active.pop(index).model_copy(
            update={"status": status, "completed_at": datetime.now(UTC), **changes}
        )
        self._completed.insert(0, job)
        self._publish()

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    def clear_completed(self) -> None:
        """Forget finished and failed jobs; active jobs are untouched."""
        self._completed = []
        self._publish()
        self._schedule_persist()

    def delete_job(self, job_id: str) -> None:
        """Forget one finished or failed job; unknown and active ids are ignored."""
        remaining = [job for job in self._completed if job.id != job_id]
        if len(remaining) == len(self._completed):
            return
        self._completed = remaining
        self._publish()
        self._schedule_persist()
        logger.info(f"Deleted job {job_id}")

    def retry_job(self, job_id: str) -> None:
        """
        Re-run a failed job under the same id.

        The job moves back to the front of the active collection with its
        error cleared. Profile and exclusions are not kept on the record,
        so the retry is sent without them.

        Raises:
            InvalidStateError: The job is unknown or did not fail
        """
        job = self.get(job_id)
        if job is None or job.status != JobStatus.ERROR:
            raise InvalidStateError("retry job", job.status.value if job else "unknown")

        self._completed = [j for j in self._completed if j.id != job_id]
        job = job.model_copy(
            update={
                "status": JobStatus.QUEUED,
                "source_count": 0,
                "sources": [],
                "recipes": [],
                "error_kind": None,
                "error_message": None,
                "completed_at": None,
            }
        )
        self._active.insert(0, job)
        self._publish()
        self._schedule_persist()

        self._start(job, None, [])
        logger.info(f"Retrying job {job_id}")

    def _schedule_persist(self) -> None:
        if self._store is None:
            return
        task = asyncio.get_running_loop().create_task(self._persist())
        self._pending_saves.add(task)
        task.add_done_callback(self._pending_saves.discard)

    async def restore(self) -> int:
        """
        Reload persisted jobs and restart the ones that were interrupted.

        Returns:
            Number of restarted jobs
        """
        if self._store is None:
            return 0

        known = {job.id for job in (*self._active, *self._completed)}
        jobs = [job for job in await self._store.load_jobs() if job.id not in known]

        interrupted = [job for job in jobs if not job.status.is_terminal]
        self._completed.extend(job for job in jobs if job.status.is_terminal)

        restarted = []
        for job in interrupted:
            job = job.model_copy(update={"status": JobStatus.QUEUED, "source_count": 0})
            self._active.append(job)
            restarted.append(job)
        self._publish()

        for job in restarted:
            self._start(job, None, [])

        logger.info(
            f"Loaded {len(restarted)} active, {len(self._completed)} completed jobs"
        )
        return len(restarted)

    async def wait(self, job_id: str) -> Job | None:
        """Wait for a job to reach a terminal state and return it."""
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.shield(task)
        return self.get(job_id)

    async def drain(self) -> None:
        """Wait for every running job and pending save."""
        while self._tasks or self._pending_saves:
            await asyncio.gather(*self._tasks.values(), *self._pending_saves)

    async def aclose(self) -> None:
        """Cancel running jobs (used on shutdown; they restart on ``restore``)."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _persist(self) -> None:
        if self._store is None:
            return
        async with self._save_lock:
            jobs = [*self._active, *self._completed]
            try:
                await self._store.save_jobs(jobs)
            except Exception as e:
                logger.exception(f"Failed to save jobs: {e}")
