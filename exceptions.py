"""Error taxonomy for the resume ranking service.

Every error carries the HTTP status and a stable error code so the API layer
can render it without knowing the concrete type.
"""
from typing import Any, Dict, Optional


class AppException(Exception):
    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "BUSINESS_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)


# --- Caller input errors --- #

class InvalidPromptError(AppException):
    def __init__(self, message: str = "Job prompt is required"):
        super().__init__(message=message, status_code=400, error_code="INVALID_PROMPT")


class NoResumesError(AppException):
    def __init__(self, message: str = "No resumes available to rank"):
        super().__init__(message=message, status_code=400, error_code="NO_RESUMES")


# --- Collaborator failures --- #

class ScoringUnavailable(AppException):
    """The scoring model could not be reached or returned unusable output."""

    def __init__(self, message: str = "Failed to analyze resume with AI", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=503,
            error_code="SCORING_UNAVAILABLE",
            details=details,
        )


class PersistenceError(AppException):
    def __init__(self, message: str = "Failed to save analysis", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=500,
            error_code="PERSISTENCE_ERROR",
            details=details,
        )


class ExtractionFailure(AppException):
    """Base class for document text extraction failures.

    These are fatal for the document in question: re-running extraction on
    the same bytes cannot succeed, so callers never retry them.
    """

    def __init__(self, message: str, status_code: int = 422, error_code: str = "EXTRACTION_FAILED"):
        super().__init__(message=message, status_code=status_code, error_code=error_code)


class UnsupportedTypeFailure(ExtractionFailure):
    def __init__(self, file_type: str):
        self.file_type = file_type
        super().__init__(
            message=f"Unsupported file type: {file_type}",
            status_code=415,
            error_code="UNSUPPORTED_FILE_TYPE",
        )


class MalformedDocumentFailure(ExtractionFailure):
    def __init__(self, message: str = "Failed to extract text from document"):
        super().__init__(message=message, error_code="MALFORMED_DOCUMENT")


class EmptyDocumentFailure(ExtractionFailure):
    def __init__(self, message: str = "Failed to extract text"):
        super().__init__(message=message, error_code="EMPTY_DOCUMENT")
