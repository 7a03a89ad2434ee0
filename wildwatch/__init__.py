"""
WildWatch Triage
================

Incident triage service for the WildWatch campus reporting platform.
"""

__version__ = "1.0.0"
