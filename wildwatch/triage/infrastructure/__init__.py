"""
Triage Infrastructure Layer
============================

Infrastructure implementations for incident triage.

Contains:
- Models: SQLAlchemy ORM models
- Repositories: tag store and candidate store
- External: text-generation service adapter
"""

from wildwatch.triage.infrastructure.models import (
    IncidentModel,
    IncidentUpdateModel,
    IncidentTagModel,
    incident_tags,
)
from wildwatch.triage.infrastructure.repositories import (
    SQLAlchemyTagRepository,
    SQLAlchemyCandidateStore,
)
from wildwatch.triage.infrastructure.external import LLMClientAdapter

__all__ = [
    "IncidentModel",
    "IncidentUpdateModel",
    "IncidentTagModel",
    "incident_tags",
    "SQLAlchemyTagRepository",
    "SQLAlchemyCandidateStore",
    "LLMClientAdapter",
]
