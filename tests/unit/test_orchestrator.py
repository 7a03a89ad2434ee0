"""Tests for the triage orchestrator."""

import asyncio

import pytest

from wildwatch.config import ModerationDecision, get_office
from wildwatch.core import LLMException, TriageException
from wildwatch.triage.domain import IncidentDraft, ModerationVerdict
from wildwatch.triage.application import TriageOrchestrator


class ScriptedOffice:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def assign_office(self, description, location, tags):
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, tuple):
            delay, outcome = outcome
            await asyncio.sleep(delay)
        return get_office(outcome)


class ScriptedClassifier:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def is_real_incident(self, incident_type, description):
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class ScriptedModeration:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0
        self.office_names = None

    async def review(self, incident_type, description, location, tags, office_names):
        self.calls += 1
        self.office_names = list(office_names)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class RecordingSimilarity:
    def __init__(self, results=None):
        self.results = results or []
        self.calls = []

    async def find_similar(self, tags, limit=3):
        self.calls.append((list(tags), limit))
        return self.results


def verdict(decision=ModerationDecision.ALLOW, confidence=0.9, reason="factual-report"):
    return ModerationVerdict(decision=decision, confidence=confidence, reasons=[reason])


@pytest.fixture
def draft():
    return IncidentDraft.from_request(
        incident_type="Safety Hazard",
        description="The stairwell light is broken.",
        location="2nd floor stairwell",
        tags=["broken-lightbulb", "stairwell", "safety-hazard"],
        building_name="Engineering Building",
    )


def make_orchestrator(office, classifier, moderation, similarity=None, **kwargs):
    return TriageOrchestrator(
        office_service=office,
        classification_service=classifier,
        moderation_service=moderation,
        similarity_service=similarity or RecordingSimilarity(),
        **kwargs
    )


@pytest.mark.asyncio
async def test_allowed_report_gets_similar_incidents(draft):
    similarity = RecordingSimilarity(results=["match"])
    orchestrator = make_orchestrator(
        ScriptedOffice("OPC"), ScriptedClassifier(True), ScriptedModeration(verdict()), similarity
    )

    result = await orchestrator.triage(draft)

    assert result.office.code == "OPC"
    assert result.is_incident is True
    assert result.verdict.decision == ModerationDecision.ALLOW
    assert result.similar_incidents == ["match"]
    assert result.normalized_location == "Engineering Building - 2nd floor stairwell"
    assert result.tags == ["broken-lightbulb", "stairwell", "safety-hazard"]
    assert result.sequential_fallback is False
    assert similarity.calls == [(["broken-lightbulb", "stairwell", "safety-hazard"], 3)]


@pytest.mark.asyncio
async def test_blocked_report_skips_similarity(draft):
    similarity = RecordingSimilarity(results=["match"])
    orchestrator = make_orchestrator(
        ScriptedOffice("SSO"),
        ScriptedClassifier(True),
        ScriptedModeration(verdict(ModerationDecision.BLOCK, 0.95, "harassment")),
        similarity,
    )

    result = await orchestrator.triage(draft)

    assert result.verdict.decision == ModerationDecision.BLOCK
    assert result.similar_incidents is None
    assert similarity.calls == []


@pytest.mark.asyncio
async def test_moderation_receives_office_full_names(draft):
    moderation = ScriptedModeration(verdict())
    await make_orchestrator(ScriptedOffice("TSG"), ScriptedClassifier(True), moderation).triage(draft)

    assert "Technical Service Group" in moderation.office_names
    assert len(moderation.office_names) == 5


@pytest.mark.asyncio
async def test_failure_reruns_all_three_sequentially(draft):
    first_verdict = verdict(confidence=0.41)
    second_verdict = verdict(confidence=0.77)
    office = ScriptedOffice("TSG", "SSD")
    classifier = ScriptedClassifier(LLMException("primary and fallback failed"), False)
    moderation = ScriptedModeration(first_verdict, second_verdict)

    result = await make_orchestrator(office, classifier, moderation).triage(draft)

    assert result.sequential_fallback is True
    assert office.calls == 2
    assert classifier.calls == 2
    # every value comes from the sequential attempt
    assert result.office.code == "SSD"
    assert result.is_incident is False
    assert moderation.calls == 2
    assert result.verdict is second_verdict


@pytest.mark.asyncio
async def test_concurrent_timeout_triggers_sequential_fallback(draft):
    office = ScriptedOffice((5, "TSG"), "OPC")
    classifier = ScriptedClassifier(True, True)
    moderation = ScriptedModeration(verdict(), verdict())

    result = await make_orchestrator(
        office, classifier, moderation, task_timeout_seconds=0.05
    ).triage(draft)

    assert result.sequential_fallback is True
    assert result.office.code == "OPC"


@pytest.mark.asyncio
async def test_sequential_failure_is_terminal(draft):
    office = ScriptedOffice(LLMException("down"), LLMException("still down"))
    classifier = ScriptedClassifier(True, True)
    moderation = ScriptedModeration(verdict(), verdict())
    similarity = RecordingSimilarity()

    with pytest.raises(TriageException) as exc_info:
        await make_orchestrator(office, classifier, moderation, similarity).triage(draft)

    assert isinstance(exc_info.value.__cause__, LLMException)
    assert office.calls == 2
    assert similarity.calls == []


@pytest.mark.asyncio
async def test_custom_similar_limit(draft):
    similarity = RecordingSimilarity()
    orchestrator = make_orchestrator(
        ScriptedOffice("OPC"), ScriptedClassifier(True), ScriptedModeration(verdict()), similarity,
        similar_limit=5,
    )

    await orchestrator.triage(draft)

    assert similarity.calls[0][1] == 5
