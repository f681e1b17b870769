"""Result store contract and an in-memory implementation."""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from chefai.models.analysis import AnalysisResult
from chefai.models.job import Job
from chefai.models.profile import UserProfile


class ResultStore(ABC):
    """
    Durable home of finalized analyses, jobs and the user profile.

    Saves replace the whole collection; callers insert, update or delete
    in memory before calling ``save_*``.
    """

    @abstractmethod
    async def load_analyses(self) -> list[AnalysisResult]:
        """Return saved analyses, newest first."""
        ...

    @abstractmethod
    async def save_analyses(self, analyses: Sequence[AnalysisResult]) -> None:
        """Replace the saved analyses."""
        ...

    @abstractmethod
    async def load_user_profile(self) -> UserProfile | None:
        ...

    @abstractmethod
    async def save_user_profile(self, profile: UserProfile) -> None:
        ...

    @abstractmethod
    async def load_jobs(self) -> list[Job]:
        ...

    @abstractmethod
    async def save_jobs(self, jobs: Sequence[Job]) -> None:
        ...


class InMemoryResultStore(ResultStore):
    """Process-local store, mainly for tests and embedding."""

    def __init__(self, max_stored_analyses: int = 50) -> None:
        self.max_stored_analyses = max_stored_analyses
        self._analyses: list[AnalysisResult] = []
        self._jobs: list[Job] = []
        self._profile: UserProfile | None = None

    async def load_analyses(self) -> list[AnalysisResult]:
        return list(self._analyses)

    async def save_analyses(self, analyses: Sequence[AnalysisResult]) -> None:
        # Keep only the most recent
        self._analyses = list(analyses)[: self.max_stored_analyses]

    async def load_user_profile(self) -> UserProfile | None:
        return self._profile

    async def save_user_profile(self, profile: UserProfile) -> None:
        self._profile = profile

    async def load_jobs(self) -> list[Job]:
        return list(self._jobs)

    async def save_jobs(self, jobs: Sequence[Job]) -> None:
        self._jobs = list(jobs)
