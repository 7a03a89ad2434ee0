"""
Triage Application DTOs
========================

Data Transfer Objects for the triage API layer.

Pydantic models for request/response validation. Field names on the wire
are camelCase.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from wildwatch.config import Office
from wildwatch.triage.domain import MAX_TAGS, SimilarityResult, Tag, TriageResult

MAX_DESCRIPTION_LENGTH = 1000


class CamelModel(BaseModel):
    """Accepts and emits camelCase field names."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _check_tag_count(v: Optional[List[str]]) -> Optional[List[str]]:
    if v is not None and len(v) > MAX_TAGS:
        raise ValueError(f"Too many tags (max {MAX_TAGS})")
    return v


# ========== Request DTOs ==========

class AnalyzeRequest(CamelModel):
    """Request model for incident analysis."""
    incident_type: str = Field(..., min_length=1, description="Reported incident type")
    description: str = Field(..., min_length=1, description="Free-text description")
    location: str = Field(default="", description="Raw location text")
    formatted_address: Optional[str] = Field(None, description="Geocoded address")
    building_name: Optional[str] = Field(None, description="Campus building name")
    tags: List[str] = Field(default_factory=list, description="Category tags, generated when empty")

    @field_validator("description")
    @classmethod
    def validate_description_length(cls, v: str) -> str:
        """Ensure description fits the reporting form limit."""
        if len(v) > MAX_DESCRIPTION_LENGTH:
            raise ValueError(f"Description too long (max {MAX_DESCRIPTION_LENGTH} characters)")
        return v

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: List[str]) -> List[str]:
        return _check_tag_count(v)


class SimilarIncidentsRequest(CamelModel):
    """Request model for a direct similarity search."""
    tags: List[str] = Field(default_factory=list)
    limit: int = Field(default=3, ge=1, le=20, description="Maximum results")

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: List[str]) -> List[str]:
        return _check_tag_count(v)


class EnsureTagsRequest(CamelModel):
    """Request model for tag get-or-create."""
    names: List[str] = Field(..., description="Tag names")

    @field_validator("names")
    @classmethod
    def validate_names(cls, v: List[str]) -> List[str]:
        return _check_tag_count(v)


# ========== Response DTOs ==========

class SimilarIncidentInfo(CamelModel):
    """Similar incident entry in API responses."""
    id: str
    tracking_number: Optional[str] = None
    similarity_score: float = Field(..., ge=0.0, le=1.0)
    incident_type: Optional[str] = None
    location: Optional[str] = None
    assigned_office: Optional[str] = None
    submitted_at: Optional[datetime] = None
    status: Optional[str] = None
    description: Optional[str] = None
    resolution_notes: Optional[str] = None
    finished_date: Optional[datetime] = None
    latest_update_message: Optional[str] = None
    latest_update_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, result: SimilarityResult) -> "SimilarIncidentInfo":
        return cls(
            id=result.id,
            tracking_number=result.tracking_number,
            similarity_score=result.similarity_score,
            incident_type=result.incident_type,
            location=result.location,
            assigned_office=result.assigned_office,
            submitted_at=result.submitted_at,
            status=result.status,
            description=result.description,
            resolution_notes=result.resolution_notes,
            finished_date=result.finished_date,
            latest_update_message=result.latest_update_message,
            latest_update_at=result.latest_update_at,
        )


class AnalyzeResponse(CamelModel):
    """
    Response model for incident analysis.

    ``similar_incidents`` is left out of the payload for blocked reports.
    """
    decision: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    reasons: List[str]
    suggested_tags: List[str]
    suggested_office: str
    normalized_location: str
    is_incident: bool
    similar_incidents: Optional[List[SimilarIncidentInfo]] = None

    @classmethod
    def from_domain(cls, result: TriageResult) -> "AnalyzeResponse":
        fields = {}
        if result.similar_incidents is not None:
            fields["similar_incidents"] = [SimilarIncidentInfo.from_domain(s) for s in result.similar_incidents]
        return cls(
            decision=result.verdict.decision.value,
            confidence=result.verdict.confidence,
            reasons=list(result.verdict.reasons),
            suggested_tags=list(result.tags),
            suggested_office=result.office.code,
            normalized_location=result.normalized_location,
            is_incident=result.is_incident,
            **fields,
        )


class SimilarIncidentsResponse(CamelModel):
    """Response model for a direct similarity search."""
    results: List[SimilarIncidentInfo]
    count: int


class TagInfo(CamelModel):
    """Stored tag in API responses."""
    id: str
    name: str

    @classmethod
    def from_domain(cls, tag: Tag) -> "TagInfo":
        return cls(id=tag.id, name=tag.name)


class EnsureTagsResponse(CamelModel):
    """Response model for tag get-or-create."""
    tags: List[TagInfo]


class OfficeInfo(CamelModel):
    """Office table entry."""
    code: str
    full_name: str
    description: str

    @classmethod
    def from_domain(cls, office: Office) -> "OfficeInfo":
        return cls(code=office.code, full_name=office.full_name, description=office.description)
