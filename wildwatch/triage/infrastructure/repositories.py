"""
Triage Infrastructure Repositories
====================================

SQLAlchemy implementations of the tag store and the incident candidate store.
"""

from contextlib import AbstractAsyncContextManager
from typing import Callable, List, Optional, Sequence

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from wildwatch.config import ACTIVE_STATUSES, TERMINAL_STATUSES
from wildwatch.core import RepositoryException
from wildwatch.infrastructure.database import get_session_context
from wildwatch.triage.application.services import ICandidateStore, ITagRepository
from wildwatch.triage.domain import SimilarityCandidate, StatusUpdate, Tag
from wildwatch.triage.infrastructure.models import (
    IncidentModel,
    IncidentTagModel,
    IncidentUpdateModel,
)
from wildwatch.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class SQLAlchemyTagRepository(ITagRepository):
    """SQLAlchemy implementation for canonical tags."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def find_by_name(self, name: str) -> Optional[Tag]:
        """Get tag by name, ignoring case."""
        stmt = (
            select(IncidentTagModel)
            .where(func.lower(IncidentTagModel.name) == name.strip().lower())
            .order_by(IncidentTagModel.name)
            .limit(1)
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to look up tag: {name}", details={"error": str(e)}) from e

        model = result.scalar_one_or_none()
        return Tag(id=model.id, name=model.name) if model else None

    async def create(self, name: str) -> Tag:
        """
        Create a tag inside a savepoint.

        If another writer inserted the same name in any casing first, the
        unique index on lower(name) fires, the savepoint is rolled back and
        the existing row is returned.
        """
        model = IncidentTagModel(name=name)
        try:
            async with self._session.begin_nested():
                self._session.add(model)
        except IntegrityError:
            logger.info("Tag created concurrently, re-reading", extra={"tag_name": name})
            existing = await self.find_by_name(name)
            if existing is None:
                raise RepositoryException(f"Tag insert conflicted but no row was found: {name}")
            return existing
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to create tag: {name}", details={"error": str(e)}) from e

        return Tag(id=model.id, name=model.name)


class SQLAlchemyCandidateStore(ICandidateStore):
    """
    Reads similarity candidates and status updates.

    Opens its own session per call because the candidate cache outlives
    any single request.
    """

    def __init__(self, session_factory: SessionFactory = get_session_context):
        self._session_factory = session_factory

    async def find_active_candidates(self, limit: int) -> List[SimilarityCandidate]:
        """Open incidents plus resolved/closed ones with resolution notes, newest first."""
        status = func.lower(IncidentModel.status)
        stmt = (
            select(IncidentModel)
            .options(selectinload(IncidentModel.tags))
            .where(
                or_(
                    status.in_([s.lower() for s in ACTIVE_STATUSES]),
                    and_(
                        status.in_([s.lower() for s in TERMINAL_STATUSES]),
                        IncidentModel.resolution_notes.is_not(None),
                        func.trim(IncidentModel.resolution_notes) != "",
                    ),
                )
            )
            .order_by(IncidentModel.submitted_at.desc())
            .limit(limit)
        )

        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                models = result.scalars().all()
        except SQLAlchemyError as e:
            raise RepositoryException("Failed to load active incidents", details={"error": str(e)}) from e

        return [
            SimilarityCandidate(
                id=model.id,
                tracking_number=model.tracking_number,
                tags=tuple(tag.name for tag in model.tags),
                incident_type=model.incident_type,
                location=model.location,
                assigned_office=model.assigned_office,
                submitted_at=model.submitted_at,
                status=model.status,
                description=model.description,
                resolution_notes=model.resolution_notes,
            )
            for model in models
        ]

    async def find_latest_update(
        self,
        incident_id: str,
        statuses: Optional[Sequence[str]] = None
    ) -> Optional[StatusUpdate]:
        """Most recent update of an incident, optionally filtered by status (case-insensitive)."""
        stmt = select(IncidentUpdateModel).where(IncidentUpdateModel.incident_id == incident_id)
        if statuses:
            stmt = stmt.where(func.lower(IncidentUpdateModel.status).in_([s.lower() for s in statuses]))
        stmt = stmt.order_by(IncidentUpdateModel.updated_at.desc(), IncidentUpdateModel.id.desc()).limit(1)

        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                model = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise RepositoryException(
                f"Failed to load updates for incident: {incident_id}",
                details={"error": str(e)}
            ) from e

        if model is None:
            return None
        return StatusUpdate(status=model.status, message=model.message, updated_at=model.updated_at)
