"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from wildwatch.core.exceptions import (
    ApplicationException,
    DomainException,
    RepositoryException,
    CandidateStoreException,
    ValidationException,
    ConfigurationException,
    ExternalServiceException,
    LLMException,
    TriageException,
)

__all__ = [
    "ApplicationException",
    "DomainException",
    "RepositoryException",
    "CandidateStoreException",
    "ValidationException",
    "ConfigurationException",
    "ExternalServiceException",
    "LLMException",
    "TriageException",
]
