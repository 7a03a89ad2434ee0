"""
Triage Module
=============

Bounded Context for incident report triage.

Responsibilities:
- Moderate report content (fail-open ALLOW/BLOCK gate)
- Route reports to a handling office
- Classify real incidents versus general concerns
- Find similar open or recently resolved incidents by tag overlap
- Keep a de-duplicated registry of category tags
"""

__version__ = "1.0.0"
