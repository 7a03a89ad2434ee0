"""
Triage Application Layer
=========================

Application layer for incident triage.

Contains:
- Services: moderation, office routing, classification, tags
- Similarity engine with its candidate cache
- Orchestrator: concurrent fan-out with sequential fallback
- DTOs: Data transfer objects for API serialization
"""

from wildwatch.triage.application.dto import (
    AnalyzeRequest,
    AnalyzeResponse,
    SimilarIncidentsRequest,
    SimilarIncidentsResponse,
    SimilarIncidentInfo,
    EnsureTagsRequest,
    EnsureTagsResponse,
    TagInfo,
    OfficeInfo,
)
from wildwatch.triage.application.services import (
    ModerationService,
    OfficeAssignmentService,
    IncidentClassificationService,
    TagGenerationService,
    TagService,
    KeyedLocks,
    parse_moderation_response,
    ITagRepository,
    ICandidateStore,
    ILLMClient,
)
from wildwatch.triage.application.similarity import CandidateCache, SimilarityService
from wildwatch.triage.application.orchestrator import TriageOrchestrator

__all__ = [
    # DTOs
    "AnalyzeRequest",
    "AnalyzeResponse",
    "SimilarIncidentsRequest",
    "SimilarIncidentsResponse",
    "SimilarIncidentInfo",
    "EnsureTagsRequest",
    "EnsureTagsResponse",
    "TagInfo",
    "OfficeInfo",
    # Services
    "ModerationService",
    "OfficeAssignmentService",
    "IncidentClassificationService",
    "TagGenerationService",
    "TagService",
    "KeyedLocks",
    "parse_moderation_response",
    "CandidateCache",
    "SimilarityService",
    "TriageOrchestrator",
    # Repository Interfaces
    "ITagRepository",
    "ICandidateStore",
    "ILLMClient",
]
