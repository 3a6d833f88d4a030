# classbook/core/exceptions.py
"""
Domain-specific exceptions for the classbook engine.

Expected business outcomes (full class, already cancelled, ...) are NOT
exceptions: services return them as structured results. The classes below
cover missing records, invalid input and infrastructure faults, which
propagate to the caller.
"""

from typing import Any, Dict, Optional

GENERIC_FAILURE_MESSAGE = "Something went wrong. Please try again."


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class ValidationException(DomainException):
    """Raised when caller input fails validation."""


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""


class ServiceException(DomainException):
    """Raised when a service operation fails for infrastructure reasons."""

    @property
    def public_message(self) -> str:
        """Text safe to show end users; the underlying cause is only logged."""
        return GENERIC_FAILURE_MESSAGE


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """


def is_db_pool_exhaustion(exc: Exception) -> bool:
    """
    Check if an exception indicates DB connection pool exhaustion.

    Workers fanning out cancellations each check out a connection, so
    pool timeouts are the most likely infrastructure fault under load.
    """
    error_str = str(exc).lower()
    return "queuepool" in error_str or (
        "timeout" in error_str and ("connection" in error_str or "pool" in error_str)
    )
