"""
Similarity Engine
=================

Finds stored incidents whose tag sets overlap a new report's tags.

Candidates come from a process-wide cache of active incidents that is
refreshed from the incident store once its age exceeds the TTL. A refresh
replaces the whole snapshot in one assignment, so readers see either the
old or the new list, never a partial one.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from wildwatch.config import TERMINAL_STATUSES, settings
from wildwatch.core.exceptions import CandidateStoreException
from wildwatch.triage.application.services import ICandidateStore
from wildwatch.triage.domain import (
    SimilarityCandidate,
    SimilarityResult,
    jaccard_similarity,
    normalize_tags,
)
from wildwatch.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)

DEFAULT_LIMIT = 3

_TERMINAL = {status.lower() for status in TERMINAL_STATUSES}


@dataclass(frozen=True)
class _Snapshot:
    candidates: Tuple[SimilarityCandidate, ...]
    refreshed_at: float


class CandidateCache:
    """
    Bounded, time-expiring pool of similarity candidates.

    Refreshes are serialized behind one lock with a second staleness check
    inside it, so concurrent callers that find the cache stale trigger a
    single store read.
    """

    def __init__(
        self,
        store: ICandidateStore,
        ttl_seconds: Optional[float] = None,
        max_candidates: Optional[int] = None,
        enabled: Optional[bool] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self._store = store
        self._ttl = ttl_seconds if ttl_seconds is not None else settings.similarity_cache_ttl_minutes * 60
        self._max_candidates = max_candidates or settings.similarity_cache_max_candidates
        self._enabled = settings.similarity_cache_enabled if enabled is None else enabled
        self._clock = clock
        self._snapshot: Optional[_Snapshot] = None
        self._lock = asyncio.Lock()

    @property
    def size(self) -> int:
        snapshot = self._snapshot
        return len(snapshot.candidates) if snapshot else 0

    def _is_stale(self, snapshot: Optional[_Snapshot]) -> bool:
        return snapshot is None or self._clock() - snapshot.refreshed_at >= self._ttl

    async def get_candidates(self) -> Tuple[SimilarityCandidate, ...]:
        """
        Current candidate list, refreshing it first when stale.

        Raises:
            CandidateStoreException: If a required refresh fails
        """
        if not self._enabled:
            return await self._fetch()

        snapshot = self._snapshot
        if not self._is_stale(snapshot):
            return snapshot.candidates

        async with self._lock:
            snapshot = self._snapshot
            if self._is_stale(snapshot):
                snapshot = _Snapshot(candidates=await self._fetch(), refreshed_at=self._clock())
                self._snapshot = snapshot
                logger.info("Refreshed similarity candidate cache", extra={"candidates": len(snapshot.candidates)})
            return snapshot.candidates

    async def _fetch(self) -> Tuple[SimilarityCandidate, ...]:
        try:
            with log_latency(logger, "candidate_refresh", limit=self._max_candidates):
                candidates = await self._store.find_active_candidates(self._max_candidates)
        except Exception as e:
            logger.error("Candidate refresh failed", extra={"error": str(e)})
            raise CandidateStoreException(
                "Failed to load similarity candidates",
                details={"error": str(e)}
            ) from e
        return tuple(candidates[: self._max_candidates])

    def invalidate(self) -> None:
        """Force the next read to refresh from the store."""
        snapshot = self._snapshot
        if snapshot is not None:
            self._snapshot = _Snapshot(candidates=snapshot.candidates, refreshed_at=float("-inf"))
        logger.info("Similarity candidate cache invalidated")


class SimilarityService:
    """
    Scores a query tag set against cached candidates with Jaccard similarity.

    Candidates without tags are skipped. Results at or above the threshold
    are sorted by descending score; ties keep candidate scan order.
    """

    def __init__(
        self,
        store: ICandidateStore,
        cache: Optional[CandidateCache] = None,
        threshold: Optional[float] = None
    ):
        self._store = store
        self._cache = cache or CandidateCache(store)
        self._threshold = settings.similarity_threshold if threshold is None else threshold

    @property
    def cache(self) -> CandidateCache:
        return self._cache

    async def find_similar(self, query_tags: Optional[Sequence[str]], limit: int = DEFAULT_LIMIT) -> List[SimilarityResult]:
        query = normalize_tags(query_tags)
        if not query:
            logger.debug("No usable tags provided for similarity search")
            return []

        if limit is None or limit <= 0:
            limit = DEFAULT_LIMIT

        candidates = await self._cache.get_candidates()

        matches: List[SimilarityResult] = []
        for candidate in candidates:
            candidate_tags = normalize_tags(candidate.tags)
            if not candidate_tags:
                continue
            score = jaccard_similarity(query, candidate_tags)
            if score >= self._threshold:
                matches.append(SimilarityResult.from_candidate(candidate, score))

        # sort is stable; equal scores keep scan order
        matches.sort(key=lambda result: result.similarity_score, reverse=True)
        results = matches[:limit]

        for result in results:
            await self._attach_status_details(result)

        logger.info(
            "Similarity search complete",
            extra={
                "query_tags": sorted(query),
                "candidates": len(candidates),
                "matches": len(matches),
                "returned": len(results)
            }
        )
        return results

    async def _attach_status_details(self, result: SimilarityResult) -> None:
        """Best-effort finished date and latest update; failures leave fields unset."""
        try:
            finished = await self._store.find_latest_update(result.id, TERMINAL_STATUSES)
            if finished is not None:
                result.finished_date = finished.updated_at

            if (result.status or "").lower() not in _TERMINAL:
                latest = await self._store.find_latest_update(result.id)
                if latest is not None:
                    result.latest_update_message = latest.message
                    result.latest_update_at = latest.updated_at
        except Exception as e:
            logger.warning(
                "Could not resolve status details for similar incident",
                extra={"incident_id": result.id, "error": str(e)}
            )

    def invalidate(self) -> None:
        self._cache.invalidate()
