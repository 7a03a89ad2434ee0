"""
Triage Application Services
============================

Application services wrapping the text-generation service and the tag store:

- ModerationService: fail-open content moderation gate
- OfficeAssignmentService: routes a report to a handling office
- IncidentClassificationService: real incident versus general concern
- TagGenerationService: suggests tags when a report carries none
- TagService: get-or-create registry of canonical tags
"""

import asyncio
import json
import math
import re
import weakref
from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Optional, Sequence, Set

from wildwatch.config import (
    OFFICES,
    ModerationDecision,
    Office,
    get_default_office,
    get_office,
)
from wildwatch.triage.domain import (
    IncidentClassificationPromptBuilder,
    ModerationPromptBuilder,
    ModerationVerdict,
    OfficeRoutingPromptBuilder,
    StatusUpdate,
    SimilarityCandidate,
    Tag,
    TagPromptBuilder,
    as_messages,
)
from wildwatch.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


# ========== Repository Interfaces ==========

class ITagRepository(ABC):
    """Interface for the canonical tag store."""

    @abstractmethod
    async def find_by_name(self, name: str) -> Optional[Tag]:
        """Get a tag by name, compared case-insensitively."""

    @abstractmethod
    async def create(self, name: str) -> Tag:
        """Insert a tag, or return the row a concurrent writer created first."""


class ICandidateStore(ABC):
    """Interface for reading stored incidents eligible for similarity search."""

    @abstractmethod
    async def find_active_candidates(self, limit: int) -> List[SimilarityCandidate]:
        """Active incidents with tags loaded, newest submission first."""

    @abstractmethod
    async def find_latest_update(
        self,
        incident_id: str,
        statuses: Optional[Sequence[str]] = None
    ) -> Optional[StatusUpdate]:
        """Most recent status update, optionally restricted to the given statuses."""


class ILLMClient(ABC):
    """Interface for LLM operations."""

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float,
        max_tokens: int,
        operation: str = "chat_completion"
    ) -> Any:
        """Generate chat completion. The result exposes ``content``."""


# ========== Moderation ==========

_FENCE_START = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_END = re.compile(r"\s*```$")

DEFAULT_CONFIDENCE = 0.5
EMPTY_REASONS_PLACEHOLDER = "moderation-complete"


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))


def _coerce_confidence(raw: Any) -> float:
    """Clamp numeric confidence into [0, 1]; anything non-numeric keeps the default."""
    if isinstance(raw, bool):
        return DEFAULT_CONFIDENCE
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        try:
            value = float(raw.strip())
        except ValueError:
            return DEFAULT_CONFIDENCE
    else:
        return DEFAULT_CONFIDENCE
    if not math.isfinite(value):
        return DEFAULT_CONFIDENCE
    return _clamp(value)


def parse_moderation_response(text: str) -> ModerationVerdict:
    """
    Parse a moderation verdict out of a possibly noisy completion.

    Strips markdown fences, keeps the substring between the first ``{`` and
    the last ``}``, then reads decision, confidence and reasons.

    Raises:
        ValueError: If no JSON object with a valid decision can be read
    """
    cleaned = _FENCE_END.sub("", _FENCE_START.sub("", text.strip())).strip()
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start >= 0 and end > start:
        cleaned = cleaned[start:end + 1]

    data = json.loads(cleaned)
    if not isinstance(data, dict):
        raise ValueError("Moderation response is not a JSON object")

    raw_decision = str(data.get("decision") or "").strip().upper()
    if raw_decision not in ModerationDecision.__members__:
        raise ValueError(f"Unknown moderation decision: {raw_decision!r}")

    raw_reasons = data.get("reasons")
    reasons = []
    if isinstance(raw_reasons, list):
        reasons = [str(reason) for reason in raw_reasons if reason is not None and str(reason).strip()]

    return ModerationVerdict(
        decision=ModerationDecision(raw_decision),
        confidence=_coerce_confidence(data.get("confidence")),
        reasons=reasons or [EMPTY_REASONS_PLACEHOLDER],
    )


class ModerationService:
    """
    Content moderation gate.

    Never raises for a degraded verdict: collaborator failures and
    unparseable output both resolve to ALLOW with confidence 0.3 so
    legitimate reports are not dropped while the service misbehaves.
    """

    def __init__(self, llm_client: ILLMClient):
        self._llm = llm_client

    async def review(
        self,
        incident_type: str,
        description: str,
        location: str,
        tags: Sequence[str],
        office_names: Sequence[str]
    ) -> ModerationVerdict:
        prompt = ModerationPromptBuilder.build_prompt(
            incident_type, description, location, tags, office_names
        )

        try:
            response = await self._llm.chat_completion(
                messages=as_messages(prompt),
                temperature=0.0,
                max_tokens=300,
                operation="moderation"
            )
        except Exception as e:
            logger.error("Moderation call failed", extra={"error": str(e)})
            return ModerationVerdict.allow_fallback("exception")

        text = (getattr(response, "content", None) or "").strip()
        if not text:
            logger.warning("Moderation returned no content")
            return ModerationVerdict.allow_fallback("Invalid response")

        try:
            verdict = parse_moderation_response(text)
        except ValueError:
            logger.warning("Moderation JSON parse failed; falling back", extra={"raw": text[:500]})
            return ModerationVerdict.allow_fallback("parse-error")

        logger.info(
            "Moderation verdict",
            extra={
                "decision": verdict.decision.value,
                "confidence": verdict.confidence,
                "reasons": verdict.reasons
            }
        )
        return verdict


# ========== Office routing ==========

class OfficeAssignmentService:
    """
    Routes a report to one office of the fixed table.

    Collaborator failures propagate so the orchestrator can retry; an
    unrecognised office code resolves to the default office.
    """

    _STRIP_CHARS = " \t\r\n`'\".:"

    def __init__(self, llm_client: ILLMClient, offices: Sequence[Office] = OFFICES):
        self._llm = llm_client
        self._offices = offices

    async def assign_office(self, description: str, location: str, tags: Sequence[str]) -> Office:
        prompt = OfficeRoutingPromptBuilder.build_prompt(description, location, tags, self._offices)
        response = await self._llm.chat_completion(
            messages=as_messages(prompt),
            temperature=0.0,
            max_tokens=500,
            operation="office_assignment"
        )

        code = (response.content or "").strip(self._STRIP_CHARS)
        office = get_office(code)
        if office is None:
            office = get_default_office()
            logger.warning(
                "Invalid office code returned, using default office",
                extra={"raw": code[:100], "office": office.code}
            )
            return office

        logger.info("Assigned to office", extra={"office": office.code})
        return office


# ========== Incident classification ==========

class IncidentClassificationService:
    """
    Decides whether a report describes a real incident or a general concern.

    Ambiguous output counts as a real incident.
    """

    def __init__(self, llm_client: ILLMClient):
        self._llm = llm_client

    async def is_real_incident(self, incident_type: str, description: str) -> bool:
        prompt = IncidentClassificationPromptBuilder.build_prompt(incident_type, description)
        response = await self._llm.chat_completion(
            messages=as_messages(prompt),
            temperature=0.1,
            max_tokens=10,
            operation="incident_classification"
        )

        result = (response.content or "").strip().lower()
        if "true" in result:
            return True
        if "false" in result:
            return False

        logger.warning("Unexpected classification output, defaulting to true", extra={"raw": result[:100]})
        return True


# ========== Tag generation ==========

class TagGenerationService:
    """Suggests category tags for a report that arrives without any."""

    _DATE_OR_TIME = re.compile(r"\d{4}-\d{2}-\d{2}|\d{1,2}:\d{2}")

    def __init__(self, llm_client: ILLMClient, max_tags: int = 5):
        self._llm = llm_client
        self._max_tags = max_tags

    async def generate_tags(self, incident_type: str, description: str, location: str) -> List[str]:
        prompt = TagPromptBuilder.build_prompt(incident_type, description, location, self._max_tags)
        try:
            response = await self._llm.chat_completion(
                messages=as_messages(prompt),
                temperature=0.7,
                max_tokens=100,
                operation="tag_generation"
            )
        except Exception as e:
            logger.error("Tag generation failed", extra={"error": str(e)})
            return []

        return self.parse_tags(response.content or "")

    def parse_tags(self, text: str) -> List[str]:
        tags: List[str] = []
        seen: Set[str] = set()
        for raw in re.split(r"[,\n]", text):
            tag = raw.strip().strip("`'\"*-. ")
            if not tag or self._DATE_OR_TIME.search(tag) or tag.lower() in seen:
                continue
            seen.add(tag.lower())
            tags.append(tag)
        return tags[: self._max_tags]


# ========== Tag registry ==========

class KeyedLocks:
    """One asyncio lock per key; locks are dropped once nobody holds them."""

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock


# Shared by every TagService in the process
_tag_name_locks = KeyedLocks()


class TagService:
    """
    Get-or-create registry for category tags.

    Names are trimmed, blank names skipped, and comparison is
    case-insensitive; the first spelling seen is the one stored.
    """

    def __init__(self, repository: ITagRepository, locks: Optional[KeyedLocks] = None):
        self._repository = repository
        self._locks = locks or _tag_name_locks

    async def ensure_tags(self, names: Optional[Iterable[Optional[str]]]) -> Set[Tag]:
        """
        Return the stored tag for every non-blank name, creating missing ones.

        Lookup and creation for one name run under that name's lock, so two
        callers in this process never both create it.
        """
        if not names:
            return set()

        tags: Set[Tag] = set()
        seen: Set[str] = set()
        processed = 0

        for raw in names:
            processed += 1
            if raw is None or not raw.strip():
                continue

            name = raw.strip()
            key = name.lower()
            if key in seen:
                continue
            seen.add(key)

            async with self._locks.lock_for(key):
                tag = await self._repository.find_by_name(name)
                if tag is None:
                    tag = await self._repository.create(name)
                    logger.debug("Created new tag", extra={"tag_name": name, "tag_id": tag.id})
                else:
                    logger.debug("Found existing tag", extra={"tag_name": tag.name, "tag_id": tag.id})
            tags.add(tag)

        logger.info("Processed tags", extra={"requested": processed, "unique": len(tags)})
        return tags
