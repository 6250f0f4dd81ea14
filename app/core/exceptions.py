"""
Custom Exceptions

This module defines the exceptions raised by the admission-control services.
Endpoints translate them into HTTP responses; services never import FastAPI.

Mapping:
- PolicyValidationError -> 400 (client error, no state change)
- NotFoundError -> 404 (no state change)
- StoreError -> 500 (durable store failure, no internal retries)
"""

from typing import Optional


class AdmissionControlError(Exception):
    """Base exception for the admission-control service."""
    pass


class PolicyValidationError(AdmissionControlError):
    """Raised when an admin policy update is missing fields or carries bad values."""

    def __init__(self, reason: str, field: Optional[str] = None):
        self.field = field
        self.reason = reason
        super().__init__(reason)


class NotFoundError(AdmissionControlError):
    """Raised when a subject has no active blacklist entry to remove."""

    def __init__(self, subject_id: str, message: str = "No active blacklist found for this user"):
        self.subject_id = subject_id
        self.message = message
        super().__init__(f"{message}: {subject_id}")


class StoreError(AdmissionControlError):
    """Raised when a durable store read or write fails."""

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(f"Store error: {message}")
