"""
Custom exceptions for the contract intake pipeline.

Only submit-time errors reach API callers; everything raised inside the
background analysis task is recorded on the analysis record instead.
"""

from typing import Any, Dict, Optional


class IntakeError(Exception):
    """Base exception for all contract intake errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        """Initialize the exception.

        Args:
            message: Error message
            details: Optional dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigError(IntakeError):
    """Raised when a collaborator cannot be built from settings."""


class DocumentNotFound(IntakeError):
    """Raised when a referenced document does not exist."""

    def __init__(self, document_id: str) -> None:
        super().__init__(f"Document not found with ID: {document_id}")
        self.document_id = document_id


class AnalysisNotFound(IntakeError):
    """Raised when no analysis record exists for an id."""

    def __init__(self, analysis_id: str) -> None:
        super().__init__(f"Analysis record not found with ID: {analysis_id}")
        self.analysis_id = analysis_id


class PersistenceError(IntakeError):
    """Raised when the analysis record store cannot read or write a record."""


class RecordCreationFailure(PersistenceError):
    """Raised when the initial PENDING record cannot be created."""


class InvalidStatusTransition(IntakeError):
    """Raised when a status update would move a record backwards or sideways."""

    def __init__(self, analysis_id: str, current: str, requested: str) -> None:
        super().__init__(
            f"Invalid status transition for analysis {analysis_id}",
            {"current": current, "requested": requested},
        )
        self.analysis_id = analysis_id
        self.current = current
        self.requested = requested


class CompletionServiceError(IntakeError):
    """Raised when the LLM completion service fails or returns nothing."""


class ExtractionError(IntakeError):
    """Raised when an extraction strategy cannot produce a field bundle."""

    def __init__(self, strategy: str, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details)
        self.strategy = strategy
