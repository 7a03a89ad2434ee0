"""
Triage Interfaces Layer
========================

Interface adapters (controllers) for incident triage.

Contains:
- Controllers: FastAPI route handlers
"""

from wildwatch.triage.interfaces.controllers import router as triage_router

__all__ = ["triage_router"]
