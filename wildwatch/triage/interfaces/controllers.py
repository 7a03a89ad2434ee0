"""
Triage Controllers (API Routes)
================================

FastAPI routes for incident triage endpoints.

Controllers delegate to application services held in ``app.state``.
"""

import time
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from wildwatch.config import OFFICES
from wildwatch.infrastructure.database import get_session
from wildwatch.triage.application import (
    AnalyzeRequest,
    AnalyzeResponse,
    EnsureTagsRequest,
    EnsureTagsResponse,
    OfficeInfo,
    SimilarIncidentInfo,
    SimilarIncidentsRequest,
    SimilarIncidentsResponse,
    SimilarityService,
    TagGenerationService,
    TagInfo,
    TagService,
    TriageOrchestrator,
)
from wildwatch.triage.domain import IncidentDraft
from wildwatch.triage.infrastructure import SQLAlchemyTagRepository
from wildwatch.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(tags=["Incident Triage"])


# ========== Example payloads for Swagger ==========

ANALYZE_REQUEST_EXAMPLE = {
    "incidentType": "Safety Hazard",
    "description": "The light in the north stairwell has been broken for two days.",
    "location": "2nd floor stairwell",
    "buildingName": "Engineering Building",
    "tags": ["broken-lightbulb", "stairwell", "safety-hazard"]
}

ANALYZE_RESPONSE_EXAMPLE = {
    "decision": "ALLOW",
    "confidence": 0.92,
    "reasons": ["factual-report"],
    "suggestedTags": ["broken-lightbulb", "stairwell", "safety-hazard"],
    "suggestedOffice": "OPC",
    "normalizedLocation": "Engineering Building - 2nd floor stairwell",
    "isIncident": True,
    "similarIncidents": [
        {
            "id": "5f0c3c52-6f1e-4e0e-9a57-3c1b9a6f2d11",
            "trackingNumber": "INC-20250310-0421",
            "similarityScore": 0.6,
            "incidentType": "Safety Hazard",
            "location": "Engineering Building - 3rd floor stairwell",
            "assignedOffice": "OPC",
            "status": "Resolved",
            "finishedDate": "2025-03-12T09:30:00Z"
        }
    ]
}


# ========== Dependencies ==========

def get_orchestrator(request: Request) -> TriageOrchestrator:
    """Get triage orchestrator from app state."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(
            status_code=503,
            detail="Triage service not available - LLM not configured"
        )
    return orchestrator


def get_tag_generation_service(request: Request) -> TagGenerationService:
    """Get tag generation service from app state."""
    service = getattr(request.app.state, "tag_generation_service", None)
    if service is None:
        raise HTTPException(
            status_code=503,
            detail="Tag generation not available - LLM not configured"
        )
    return service


def get_similarity_service(request: Request) -> SimilarityService:
    """Get similarity engine from app state."""
    service = getattr(request.app.state, "similarity_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Similarity search not available")
    return service


async def get_tag_service(db: AsyncSession = Depends(get_session)) -> TagService:
    """Tag registry bound to the request session."""
    return TagService(SQLAlchemyTagRepository(db))


# ========== Route Handlers ==========

@router.post(
    "/incidents/analyze",
    response_model=AnalyzeResponse,
    response_model_exclude_unset=True,
    summary="Triage an incident report",
    description="""
    Run the triage pipeline on a report before it is submitted:

    - **Moderation**: ALLOW or BLOCK with confidence and reasons
    - **Office**: handling office code (TSG, OPC, SSO, SSD, SSG)
    - **Classification**: real incident versus general concern
    - **Similar incidents**: only for allowed reports

    Tags are generated when the request carries none.
    """,
    responses={
        200: {
            "description": "Report triaged",
            "content": {"application/json": {"example": ANALYZE_RESPONSE_EXAMPLE}}
        },
        500: {"description": "Triage failed on both the concurrent and the sequential attempt"},
        503: {"description": "Triage service or candidate store not available"}
    },
    openapi_extra={
        "requestBody": {"content": {"application/json": {"example": ANALYZE_REQUEST_EXAMPLE}}}
    }
)
async def analyze_incident(
    request: Request,
    payload: AnalyzeRequest,
    orchestrator: TriageOrchestrator = Depends(get_orchestrator),
    tag_generator: TagGenerationService = Depends(get_tag_generation_service)
):
    start_time = time.perf_counter()
    correlation_id = getattr(request.state, "correlation_id", "unknown")

    draft = IncidentDraft.from_request(
        incident_type=payload.incident_type,
        description=payload.description,
        location=payload.location,
        tags=payload.tags,
        building_name=payload.building_name,
        formatted_address=payload.formatted_address
    )

    if not draft.tags:
        draft.tags = await tag_generator.generate_tags(
            draft.incident_type, draft.description, draft.enhanced_location
        )
        logger.info(
            "Generated tags for analysis",
            extra={"correlation_id": correlation_id, "tag_count": len(draft.tags)}
        )

    result = await orchestrator.triage(draft)

    logger.info(
        "Incident analyzed",
        extra={
            "correlation_id": correlation_id,
            "decision": result.verdict.decision.value,
            "office": result.office.code,
            "latency_ms": int((time.perf_counter() - start_time) * 1000)
        }
    )

    return AnalyzeResponse.from_domain(result)


@router.post(
    "/incidents/similar",
    response_model=SimilarIncidentsResponse,
    summary="Find incidents similar to a tag set"
)
async def find_similar_incidents(
    request: Request,
    payload: SimilarIncidentsRequest,
    service: SimilarityService = Depends(get_similarity_service)
):
    results = await service.find_similar(payload.tags, payload.limit)

    logger.info(
        "Similar incidents requested",
        extra={
            "correlation_id": getattr(request.state, "correlation_id", "unknown"),
            "returned": len(results)
        }
    )

    infos = [SimilarIncidentInfo.from_domain(r) for r in results]
    return SimilarIncidentsResponse(results=infos, count=len(infos))


@router.post(
    "/incidents/similar/cache/invalidate",
    summary="Force the similarity candidate cache to refresh"
)
async def invalidate_similarity_cache(service: SimilarityService = Depends(get_similarity_service)):
    service.invalidate()
    return {"status": "invalidated"}


@router.post(
    "/tags",
    response_model=EnsureTagsResponse,
    summary="Get or create tags"
)
async def ensure_tags(
    payload: EnsureTagsRequest,
    service: TagService = Depends(get_tag_service)
):
    tags = await service.ensure_tags(payload.names)
    return EnsureTagsResponse(
        tags=[TagInfo.from_domain(tag) for tag in sorted(tags, key=lambda t: t.name.lower())]
    )


@router.get(
    "/offices",
    response_model=List[OfficeInfo],
    summary="List handling offices"
)
async def list_offices():
    return [OfficeInfo.from_domain(office) for office in OFFICES]
