"""Tests for the tag registry."""

import asyncio

import pytest
from sqlalchemy import func, select

from wildwatch.triage.application import KeyedLocks, TagService
from wildwatch.triage.infrastructure import IncidentTagModel, SQLAlchemyTagRepository


# ==========================================
#  SERVICE (in-memory repository)
# ==========================================


@pytest.mark.asyncio
async def test_case_and_whitespace_variants_share_one_tag(tag_repository):
    service = TagService(tag_repository, KeyedLocks())

    first = await service.ensure_tags(["Theft", "theft ", " THEFT"])
    second = await service.ensure_tags(["Theft", "theft ", " THEFT"])

    assert len(first) == 1
    assert first == second
    assert next(iter(first)).name == "Theft"
    assert tag_repository.create_calls == 1


@pytest.mark.asyncio
async def test_blank_names_are_skipped(tag_repository):
    service = TagService(tag_repository, KeyedLocks())

    tags = await service.ensure_tags(["", "   ", None, "wifi"])

    assert {t.name for t in tags} == {"wifi"}


@pytest.mark.asyncio
async def test_empty_input_returns_empty_set(tag_repository):
    service = TagService(tag_repository, KeyedLocks())

    assert await service.ensure_tags([]) == set()
    assert await service.ensure_tags(None) == set()
    assert tag_repository.create_calls == 0


@pytest.mark.asyncio
async def test_concurrent_callers_create_each_name_once(tag_repository):
    locks = KeyedLocks()
    services = [TagService(tag_repository, locks) for _ in range(5)]

    results = await asyncio.gather(*(s.ensure_tags(["Theft", "Library"]) for s in services))

    assert tag_repository.create_calls == 2
    assert all(r == results[0] for r in results)


@pytest.mark.asyncio
async def test_existing_tag_keeps_stored_spelling(tag_repository):
    service = TagService(tag_repository, KeyedLocks())
    await service.ensure_tags(["WiFi"])

    tags = await service.ensure_tags(["wifi"])

    assert [t.name for t in tags] == ["WiFi"]


# ==========================================
#  SQLALCHEMY REPOSITORY
# ==========================================


@pytest.mark.asyncio
async def test_repository_registry_is_idempotent(session_maker):
    async with session_maker() as session:
        service = TagService(SQLAlchemyTagRepository(session), KeyedLocks())
        first = await service.ensure_tags(["Theft", "theft ", " THEFT"])
        second = await service.ensure_tags(["Theft", "theft ", " THEFT", "Library"])
        await session.commit()

    async with session_maker() as session:
        count = await session.scalar(
            select(func.count()).select_from(IncidentTagModel).where(func.lower(IncidentTagModel.name) == "theft")
        )
        total = await session.scalar(select(func.count()).select_from(IncidentTagModel))

    assert count == 1
    assert total == 2
    assert first <= second


@pytest.mark.asyncio
async def test_repository_lookup_ignores_case(session_maker):
    async with session_maker() as session:
        repository = SQLAlchemyTagRepository(session)
        created = await repository.create("Parking")
        await session.commit()

        found = await repository.find_by_name("  parking ")

    assert found == created
    assert found.name == "Parking"


@pytest.mark.asyncio
async def test_case_variant_from_another_writer_returns_existing_tag(session_maker):
    async with session_maker() as session:
        first = await SQLAlchemyTagRepository(session).create("Theft")
        await session.commit()

    async with session_maker() as session:
        second = await SQLAlchemyTagRepository(session).create("theft")
        await session.commit()

    async with session_maker() as session:
        total = await session.scalar(select(func.count()).select_from(IncidentTagModel))

    assert total == 1
    assert second == first
    assert second.name == "Theft"
