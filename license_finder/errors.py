"""
Custom exceptions for License Finder
"""

from typing import Any, List, Optional


class LicenseFinderException(Exception):
    """Base exception for License Finder."""

    pass


class EntityNotFoundException(LicenseFinderException):
    """Record not found in the store."""

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} with ID {entity_id} not found")


class JudgmentValidationError(LicenseFinderException):
    """Scoring judgment failed validation (out-of-range or malformed fields)."""

    def __init__(self, message: str, errors: Optional[List[Any]] = None):
        self.errors = errors or []
        super().__init__(message)


class InvalidWeightsError(LicenseFinderException):
    """Scoring weights are negative or do not sum to 1.0."""

    pass


class StructuredOutputError(LicenseFinderException):
    """LLM did not return schema-valid JSON after all retries."""

    def __init__(self, prompt_name: str, last_error: Optional[str] = None):
        self.prompt_name = prompt_name
        self.last_error = last_error
        super().__init__(
            f"Structured LLM call failed after retries ({prompt_name}): {last_error}"
        )


class AuthConfigurationError(LicenseFinderException):
    """APP_PASSWORD or AUTH_SECRET is not set."""

    def __init__(self, message: str = "Server misconfigured"):
        self.message = message
        super().__init__(message)
