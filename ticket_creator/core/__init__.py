"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from ticket_creator.core.exceptions import (
    ApplicationException,
    DomainException,
    ValidationException,
    ResourceNotFoundException,
    ConfigurationException,
    DirectoryNotReadyException,
    InvalidTransitionException,
    SessionBusyException,
    ExternalServiceException,
    TransportException,
    ShapeMismatchException,
    LLMException,
    TicketingException,
    ExtractionException,
    SubmissionException,
)

__all__ = [
    "ApplicationException",
    "DomainException",
    "ValidationException",
    "ResourceNotFoundException",
    "ConfigurationException",
    "DirectoryNotReadyException",
    "InvalidTransitionException",
    "SessionBusyException",
    "ExternalServiceException",
    "TransportException",
    "ShapeMismatchException",
    "LLMException",
    "TicketingException",
    "ExtractionException",
    "SubmissionException",
]
