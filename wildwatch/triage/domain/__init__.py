"""
Triage Domain Layer
===================

Domain layer for incident triage.

Contains:
- Entities: IncidentDraft, Tag, ModerationVerdict, SimilarityCandidate,
  SimilarityResult, TriageResult
- Scoring: tag normalisation and Jaccard similarity
- Prompt builders for the text-generation service

This layer is framework-agnostic and contains pure business logic.
"""

from wildwatch.triage.domain.entities import (
    IncidentDraft,
    Tag,
    ModerationVerdict,
    StatusUpdate,
    SimilarityCandidate,
    SimilarityResult,
    TriageResult,
    MAX_TAGS,
)
from wildwatch.triage.domain.scoring import normalize_tags, jaccard_similarity
from wildwatch.triage.domain.prompts import (
    ModerationPromptBuilder,
    OfficeRoutingPromptBuilder,
    IncidentClassificationPromptBuilder,
    TagPromptBuilder,
    as_messages,
)

__all__ = [
    "IncidentDraft",
    "Tag",
    "ModerationVerdict",
    "StatusUpdate",
    "SimilarityCandidate",
    "SimilarityResult",
    "TriageResult",
    "MAX_TAGS",
    "normalize_tags",
    "jaccard_similarity",
    "ModerationPromptBuilder",
    "OfficeRoutingPromptBuilder",
    "IncidentClassificationPromptBuilder",
    "TagPromptBuilder",
    "as_messages",
]
