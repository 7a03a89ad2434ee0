"""
Triage Infrastructure Models
=============================

SQLAlchemy ORM models for the incident tables read by triage.

The reporting platform owns these tables; triage reads incidents and their
updates and writes only to the tag table.
"""

from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Table, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wildwatch.config import IncidentStatus
from wildwatch.infrastructure.database import Base


def _new_id() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


incident_tags = Table(
    "incident_tags",
    Base.metadata,
    Column("incident_id", String(36), ForeignKey("incidents.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", String(36), ForeignKey("incident_general_tags.tag_id", ondelete="CASCADE"), primary_key=True),
)


class IncidentTagModel(Base):
    """
    Canonical category tag.

    Names are unique ignoring case, matching the case-insensitive lookup.
    """
    __tablename__ = "incident_general_tags"

    id: Mapped[str] = mapped_column("tag_id", String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


Index("uq_incident_general_tags_lower_name", func.lower(IncidentTagModel.name), unique=True)


class IncidentModel(Base):
    """Database model for a submitted incident report."""
    __tablename__ = "incidents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    tracking_number: Mapped[Optional[str]] = mapped_column(String(32), unique=True, nullable=True)

    incident_type: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    assigned_office: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    status: Mapped[str] = mapped_column(String(50), nullable=False, default=IncidentStatus.PENDING.value, index=True)
    resolution_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        index=True
    )

    tags: Mapped[List[IncidentTagModel]] = relationship(secondary=incident_tags, lazy="selectin")
    updates: Mapped[List["IncidentUpdateModel"]] = relationship(
        back_populates="incident",
        cascade="all, delete-orphan",
        lazy="noload"
    )


class IncidentUpdateModel(Base):
    """Status transition record of an incident."""
    __tablename__ = "incident_updates"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    incident_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("incidents.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow
    )

    incident: Mapped[IncidentModel] = relationship(back_populates="updates")
