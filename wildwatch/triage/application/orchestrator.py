"""
Triage Orchestrator
===================

Entry point of the triage pipeline.

Office routing, incident classification and moderation run concurrently in
one task group. If any of them fails, every partial result is dropped and
the three calls are re-run one after another exactly once. Similar
incidents are looked up only for allowed reports.
"""

import asyncio
import time
from typing import Awaitable, Optional, Sequence, Tuple, TypeVar

from wildwatch.config import OFFICES, Office, settings
from wildwatch.core.exceptions import TriageException
from wildwatch.triage.application.services import (
    IncidentClassificationService,
    ModerationService,
    OfficeAssignmentService,
)
from wildwatch.triage.application.similarity import SimilarityService
from wildwatch.triage.domain import IncidentDraft, ModerationVerdict, TriageResult
from wildwatch.shared.infrastructure.grafana import get_grafana_exporter
from wildwatch.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Analysis = Tuple[Office, bool, ModerationVerdict]


class TriageOrchestrator:
    """Fans out the three analysis calls and assembles the TriageResult."""

    def __init__(
        self,
        office_service: OfficeAssignmentService,
        classification_service: IncidentClassificationService,
        moderation_service: ModerationService,
        similarity_service: SimilarityService,
        office_names: Optional[Sequence[str]] = None,
        similar_limit: Optional[int] = None,
        task_timeout_seconds: Optional[float] = None
    ):
        self._office_service = office_service
        self._classification_service = classification_service
        self._moderation_service = moderation_service
        self._similarity_service = similarity_service
        self._office_names = list(office_names) if office_names is not None else [o.full_name for o in OFFICES]
        self._similar_limit = similar_limit or settings.triage_similar_limit
        self._task_timeout = task_timeout_seconds or settings.triage_task_timeout_seconds

    async def triage(self, draft: IncidentDraft) -> TriageResult:
        """
        Run the full triage pipeline for one draft.

        Raises:
            TriageException: If both the concurrent and the sequential attempt fail
            CandidateStoreException: If the similarity candidate pool cannot be refreshed
        """
        start_time = time.perf_counter()
        sequential_fallback = False

        try:
            office, is_incident, verdict = await self._run_concurrently(draft)
        except ExceptionGroup as group:
            sequential_fallback = True
            logger.warning(
                "Concurrent triage failed, retrying sequentially",
                extra={"errors": [f"{type(e).__name__}: {e}" for e in group.exceptions]}
            )
            try:
                office, is_incident, verdict = await self._run_sequentially(draft)
            except Exception as e:
                logger.error(
                    "Sequential triage failed",
                    extra={"error": str(e), "error_type": type(e).__name__}
                )
                raise TriageException(
                    "Triage failed on both concurrent and sequential attempts",
                    details={"error": str(e)}
                ) from e

        similar = None
        if verdict.allowed:
            similar = await self._similarity_service.find_similar(draft.tags, self._similar_limit)

        latency_ms = int((time.perf_counter() - start_time) * 1000)
        logger.info(
            "Incident triaged",
            extra={
                "decision": verdict.decision.value,
                "office": office.code,
                "is_incident": is_incident,
                "similar_count": len(similar) if similar is not None else 0,
                "sequential_fallback": sequential_fallback,
                "latency_ms": latency_ms
            }
        )

        exporter = get_grafana_exporter()
        if exporter and exporter.is_enabled():
            await exporter.export_triage_metrics(
                decision=verdict.decision.value,
                office=office.code,
                sequential_fallback=sequential_fallback,
                latency_ms=latency_ms
            )

        return TriageResult(
            verdict=verdict,
            office=office,
            is_incident=is_incident,
            tags=list(draft.tags),
            normalized_location=draft.enhanced_location,
            similar_incidents=similar,
            sequential_fallback=sequential_fallback,
        )

    async def _bounded(self, call: Awaitable[T]) -> T:
        async with asyncio.timeout(self._task_timeout):
            return await call

    async def _run_concurrently(self, draft: IncidentDraft) -> Analysis:
        async with asyncio.TaskGroup() as group:
            office_task = group.create_task(self._bounded(self._assign_office(draft)))
            classification_task = group.create_task(self._bounded(self._classify(draft)))
            moderation_task = group.create_task(self._bounded(self._moderate(draft)))

        return office_task.result(), classification_task.result(), moderation_task.result()

    async def _run_sequentially(self, draft: IncidentDraft) -> Analysis:
        office = await self._assign_office(draft)
        is_incident = await self._classify(draft)
        verdict = await self._moderate(draft)
        return office, is_incident, verdict

    async def _assign_office(self, draft: IncidentDraft) -> Office:
        return await self._office_service.assign_office(
            draft.description, draft.enhanced_location, draft.tags
        )

    async def _classify(self, draft: IncidentDraft) -> bool:
        return await self._classification_service.is_real_incident(draft.incident_type, draft.description)

    async def _moderate(self, draft: IncidentDraft) -> ModerationVerdict:
        return await self._moderation_service.review(
            draft.incident_type,
            draft.description,
            draft.enhanced_location,
            draft.tags,
            self._office_names
        )
