"""
Triage Domain Entities
======================

Domain entities for the incident triage module.

Contains pure Python business objects: the incoming draft, the moderation
verdict, similarity candidates/results and the aggregated triage result.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

from wildwatch.config import ModerationDecision, Office
from wildwatch.core import ValidationException

MAX_TAGS = 20


@dataclass
class IncidentDraft:
    """
    An incoming report before persistence.

    ``enhanced_location`` is already the concatenation of building/address
    and raw location; see ``from_request``.
    """
    incident_type: str
    description: str
    enhanced_location: str
    tags: List[str] = field(default_factory=list)

    def __post_init__(self):
        if len(self.tags) > MAX_TAGS:
            raise ValidationException(
                f"An incident draft carries at most {MAX_TAGS} tags",
                details={"tag_count": len(self.tags)}
            )

    @staticmethod
    def build_enhanced_location(
        location: str,
        building_name: Optional[str] = None,
        formatted_address: Optional[str] = None
    ) -> str:
        """Prefix the raw location with the building name, else the formatted address."""
        location = location or ""
        if building_name and building_name.strip():
            return f"{building_name} - {location}"
        if formatted_address and formatted_address.strip():
            return f"{formatted_address} - {location}"
        return location

    @classmethod
    def from_request(
        cls,
        incident_type: str,
        description: str,
        location: str,
        tags: Optional[List[str]] = None,
        building_name: Optional[str] = None,
        formatted_address: Optional[str] = None
    ) -> "IncidentDraft":
        """Create a draft from raw request fields."""
        return cls(
            incident_type=incident_type,
            description=description,
            enhanced_location=cls.build_enhanced_location(location, building_name, formatted_address),
            tags=list(tags or []),
        )


@dataclass(frozen=True)
class Tag:
    """Canonical category label owned by the tag registry."""
    id: str
    name: str


@dataclass
class ModerationVerdict:
    """
    Result of the moderation gate.

    ``reasons`` is never empty.
    """
    decision: ModerationDecision
    confidence: float  # 0.0 to 1.0
    reasons: List[str]

    FALLBACK_CONFIDENCE = 0.3

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError("Confidence must be between 0 and 1")
        if not self.reasons:
            raise ValueError("A verdict carries at least one reason")

    @property
    def allowed(self) -> bool:
        return self.decision == ModerationDecision.ALLOW

    @classmethod
    def allow_fallback(cls, reason: str) -> "ModerationVerdict":
        """Fail-open verdict used whenever a clean verdict could not be obtained."""
        return cls(
            decision=ModerationDecision.ALLOW,
            confidence=cls.FALLBACK_CONFIDENCE,
            reasons=[reason],
        )


@dataclass(frozen=True)
class StatusUpdate:
    """Status transition record of a stored incident."""
    status: str
    message: Optional[str]
    updated_at: datetime


@dataclass(frozen=True)
class SimilarityCandidate:
    """
    Read-only snapshot of a stored incident eligible for similarity search.

    Snapshots are replaced wholesale on every cache refresh.
    """
    id: str
    tracking_number: Optional[str]
    tags: Tuple[str, ...]
    incident_type: Optional[str]
    location: Optional[str]
    assigned_office: Optional[str]
    submitted_at: Optional[datetime]
    status: Optional[str] = None
    description: Optional[str] = None
    resolution_notes: Optional[str] = None


@dataclass
class SimilarityResult:
    """A candidate that passed the similarity threshold for one query."""
    id: str
    tracking_number: Optional[str]
    similarity_score: float
    incident_type: Optional[str]
    location: Optional[str]
    assigned_office: Optional[str]
    submitted_at: Optional[datetime]
    status: Optional[str] = None
    description: Optional[str] = None
    resolution_notes: Optional[str] = None
    finished_date: Optional[datetime] = None
    latest_update_message: Optional[str] = None
    latest_update_at: Optional[datetime] = None

    @classmethod
    def from_candidate(cls, candidate: SimilarityCandidate, score: float) -> "SimilarityResult":
        return cls(
            id=candidate.id,
            tracking_number=candidate.tracking_number,
            similarity_score=score,
            incident_type=candidate.incident_type,
            location=candidate.location,
            assigned_office=candidate.assigned_office,
            submitted_at=candidate.submitted_at,
            status=candidate.status,
            description=candidate.description,
            resolution_notes=candidate.resolution_notes,
        )


@dataclass
class TriageResult:
    """
    Aggregate returned by the triage orchestrator.

    ``similar_incidents`` is None when the report was blocked.
    """
    verdict: ModerationVerdict
    office: Office
    is_incident: bool
    tags: List[str]
    normalized_location: str
    similar_incidents: Optional[List[SimilarityResult]] = None
    sequential_fallback: bool = False
