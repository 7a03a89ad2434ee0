"""
Triage Prompt Builders
======================

Builds the prompts sent to the text-generation service.

Following DRY principle - all prompt logic in one place. Prompts are built
by concatenation so user text containing braces or percent signs is passed
through untouched.
"""

from typing import List, Optional, Sequence

from wildwatch.config import OFFICES, Office


def _safe(value: Optional[str]) -> str:
    return value or ""


def _truncate(value: str, limit: int) -> str:
    return value if len(value) <= limit else value[:limit] + "..."


class ModerationPromptBuilder:
    """Builds the content moderation policy prompt."""

    POLICY = (
        "You are a strict content moderator for a university incident reporting system.\n"
        "Analyze ONLY the Incident Type and Description fields to decide whether to ALLOW or BLOCK a report.\n"
        "DO NOT rely on tags or location for moderation decisions.\n\n"
        "BLOCK if ANY of the following apply:\n"
        "1. Harassment, slurs, demeaning stereotypes, targeted insults or threats.\n"
        "2. Profanity, vulgar or abusive language, or rudeness without a legitimate incident description.\n"
        "3. Disparagement, shaming or defamation directed at a university office without constructive intent.\n"
        "4. Calls to harm, doxx or publicize staff.\n\n"
        "ALLOW when:\n"
        "- Text is neutral, factual and safety-focused, even if it names an office.\n"
        "- The description states what happened, even briefly.\n"
    )

    @classmethod
    def build_prompt(
        cls,
        incident_type: str,
        description: str,
        location: str,
        tags: Sequence[str],
        office_names: Sequence[str]
    ) -> str:
        offices = ", ".join(office_names) if office_names else "none listed"
        return (
            cls.POLICY
            + "\nThe university offices include: " + offices + "\n\n"
            + "Inputs to analyze:\n"
            + "- IncidentType: '" + _safe(incident_type) + "'\n"
            + "- Description: '" + _safe(description) + "'\n\n"
            + "(Location and tags are provided for context only, do not use for moderation):\n"
            + "- Location: '" + _safe(location) + "'\n"
            + "- Tags: [" + ", ".join(tags or []) + "]\n\n"
            + "Return JSON with fields only: decision (ALLOW|BLOCK), confidence (0-1), "
            + "reasons (array of short phrases such as 'profanity', 'harassment', "
            + "'threat', 'office-disparagement', 'factual-report'). No extra text."
        )


class OfficeRoutingPromptBuilder:
    """Builds the prompt asking for a single handling office code."""

    RULES = (
        "RULES (FOLLOW IN ORDER - STOP AT FIRST MATCH):\n"
        "1. WiFi/network/internet/computer/lab equipment or other technical issues -> TSG\n"
        "2. Student fights/bullying/misbehavior/disciplinary matters -> SSO\n"
        "3. Parking/car/vehicle issues -> SSD\n"
        "4. Theft/robbery/external threats/security -> SSD\n"
        "5. Non-computer property/furniture/grounds/facilities -> OPC\n"
        "6. Academic support/counseling/student records -> SSO\n"
        "7. Student advocacy/student welfare/anything else -> SSG\n"
    )

    @classmethod
    def build_prompt(
        cls,
        description: str,
        location: str,
        tags: Sequence[str],
        offices: Sequence[Office] = OFFICES
    ) -> str:
        office_lines = "".join(f"{office.code}: {office.description}\n" for office in offices)
        codes = ", ".join(office.code for office in offices)
        return (
            "Assign this incident to the correct office code.\n\n"
            + "Description: " + _truncate(_safe(description), 500) + "\n"
            + "Location: " + _truncate(_safe(location), 200) + "\n"
            + "Tags: " + ", ".join(tags or []) + "\n\n"
            + cls.RULES + "\n"
            + "Offices:\n" + office_lines + "\n"
            + "Return ONLY one of: " + codes
        )


class IncidentClassificationPromptBuilder:
    """Builds the real-incident versus concern prompt."""

    @classmethod
    def build_prompt(cls, incident_type: str, description: str) -> str:
        return (
            "Analyze this report and determine if it is a REAL INCIDENT or just a CONCERN:\n\n"
            + "Incident Type: '" + _safe(incident_type) + "'\n"
            + "Description: '" + _safe(description) + "'\n\n"
            + "A REAL INCIDENT is an actual event that occurred (theft, vandalism, harassment, "
            + "safety hazard), needs action or investigation, or violates rules, safety or security.\n"
            + "A CONCERN is a general question, suggestion, feedback, complaint about services "
            + "without a specific event, or a request for information.\n\n"
            + "Return ONLY 'true' if it's a REAL INCIDENT, or 'false' if it's just a CONCERN. "
            + "Do not include any explanations or additional text."
        )


class TagPromptBuilder:
    """Builds the tag suggestion prompt."""

    @classmethod
    def build_prompt(cls, incident_type: str, description: str, location: str, count: int = 5) -> str:
        return (
            "You are classifying an incident into tags.\n"
            + "Input:\n"
            + "- Incident Type: '" + _safe(incident_type) + "'\n"
            + "- Description: '" + _safe(description) + "'\n"
            + "- Location: '" + _safe(location) + "'\n"
            + f"Generate EXACTLY {count} single-word tags. The first 2 describe the location, "
            + "the rest describe the incident. No dates or times, no duplicates, no generic "
            + "words like 'Issue' or 'Problem'.\n"
            + "Output format: Tag1, Tag2, Tag3, Tag4, Tag5"
        )


def as_messages(prompt: str) -> List[dict]:
    """Wrap a single free-text prompt as a chat message list."""
    return [{"role": "user", "content": prompt}]
