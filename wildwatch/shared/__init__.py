"""
Shared Kernel Module
====================

Generic infrastructure used by the triage module: structured logging,
Grafana metrics export and API middleware.

DO NOT add triage business logic to the shared kernel.
"""

__version__ = "1.0.0"
