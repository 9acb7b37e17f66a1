"""
Custom exceptions and error handling for the Retainer Settlements service.

Provides:
- Typed exception hierarchy for the validation / persistence / consistency
  failure classes
- Error context preservation for debugging
- Classification of raw database driver errors
"""

from typing import Any


class SettlementError(Exception):
    """Base exception for all retainer settlement errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} | context={self.context}"
        return self.message


# =============================================================================
# Client Errors
# =============================================================================


class ClientError(SettlementError):
    """Base class for client-related errors."""

    pass


class DatabaseError(ClientError):
    """Error from Postgres operations."""

    pass


class DatabaseConnectionError(DatabaseError):
    """Failed to connect to Postgres."""

    pass


class DatabaseQueryError(DatabaseError):
    """Error executing a SQL statement."""

    pass


class DatabaseConstraintError(DatabaseError):
    """Constraint violation (e.g., duplicate unique key, foreign key)."""

    pass


# =============================================================================
# Pipeline Errors
# =============================================================================


class PipelineError(SettlementError):
    """Base class for settlement pipeline errors."""

    pass


class ValidationError(PipelineError):
    """Input validation failed. Raised before any network call."""

    pass


class UnknownStageError(ValidationError):
    """A status label is not one of the registered pipeline stages."""

    pass


class UnknownDealError(ValidationError):
    """A deal id is not part of the settlement working set."""

    pass


class PersistenceError(PipelineError):
    """The store rejected or failed a write."""

    pass


class DealNotFoundError(PersistenceError):
    """A write targeted a deal that the store does not have."""

    pass


class StageTransitionError(PersistenceError):
    """Persisting a stage change failed; the local change was rolled back."""

    pass


class ConsistencyError(PipelineError):
    """A write affected fewer rows than expected."""

    pass


class IneligibleOperationError(PipelineError):
    """The deal's current state does not allow the requested operation."""

    pass


class TransitionInFlightError(PipelineError):
    """A stage change for the same deal is still waiting on the store."""

    pass


# =============================================================================
# Error Handling Utilities
# =============================================================================


def wrap_db_error(exc: Exception, context: dict[str, Any] | None = None) -> DatabaseError:
    """
    Wrap a SQLAlchemy / asyncpg exception in our typed error hierarchy.

    Args:
        exc: The original exception
        context: Additional context for debugging

    Returns:
        Typed DatabaseError subclass
    """
    error_str = str(exc).lower()
    ctx = context or {}
    ctx['original_error'] = str(exc)
    ctx['error_type'] = type(exc).__name__

    if 'connection' in error_str or 'connect' in error_str or 'timeout' in error_str:
        return DatabaseConnectionError(
            f"Postgres connection failed: {exc}",
            context=ctx,
        )
    elif 'unique' in error_str or 'duplicate key' in error_str or 'foreign key' in error_str:
        return DatabaseConstraintError(
            f"Postgres constraint violation: {exc}",
            context=ctx,
        )
    else:
        return DatabaseQueryError(
            f"Postgres query error: {exc}",
            context=ctx,
        )
