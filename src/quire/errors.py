"""quire Error Hierarchy.

Provides a structured error hierarchy for page and block operations:
- QuireError: Base exception for all application errors
- ValidationError: Input validation failures (bad fields, bad block types)
- NotAuthenticatedError: Mutation attempted with no established owner
- NoPageSelectedError: Block operation with no scoped page
- InvalidMoveError: Self-parenting or move into a descendant
- NotFoundError: Referenced page or block does not exist
- StoreError: Opaque failure surfaced from the record store

Validation errors are raised before any store call, so they never leave
partial state behind. StoreError is never retried by the core.

Usage:
    from quire.errors import InvalidMoveError

    if page_id == new_parent_id:
        raise InvalidMoveError("Cannot move page to itself", page_id=page_id)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .models import Block

logger = logging.getLogger(__name__)


# =============================================================================
# Error Base Class
# =============================================================================


class QuireError(Exception):
    """Base exception for all quire errors.

    Attributes:
        message: Human-readable error description
        recoverable: Whether the operation can be retried
        context: Additional context for debugging
    """

    def __init__(
        self,
        message: str,
        *,
        recoverable: bool = False,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to structured dictionary for RPC responses."""
        return {
            "type": type(self).__name__.lower().replace("error", ""),
            "message": self.message,
            "recoverable": self.recoverable,
            **{k: v for k, v in self.context.items() if v is not None},
        }


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(QuireError):
    """Input validation failed.

    Example:
        raise ValidationError("Field not updatable", field="owner_id")
    """

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        constraint: str | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.pop("context", {})
        if field:
            context["field"] = field
        if constraint:
            context["constraint"] = constraint
        super().__init__(message, recoverable=False, context=context)
        self.field = field
        self.constraint = constraint


class NotAuthenticatedError(QuireError):
    """No owner is established for the session."""

    def __init__(
        self,
        message: str = "Not authenticated",
        *,
        operation: str | None = None,
    ) -> None:
        super().__init__(message, recoverable=False, context={"operation": operation})
        self.operation = operation


class NoPageSelectedError(QuireError):
    """A block operation was attempted with no page in scope."""

    def __init__(
        self,
        message: str = "No page selected",
        *,
        operation: str | None = None,
    ) -> None:
        super().__init__(message, recoverable=False, context={"operation": operation})
        self.operation = operation


class InvalidMoveError(QuireError):
    """A reparenting would make a page its own ancestor."""

    def __init__(
        self,
        message: str,
        *,
        page_id: str | None = None,
        target_id: str | None = None,
        reason: str | None = None,
    ) -> None:
        super().__init__(
            message,
            recoverable=False,
            context={"page_id": page_id, "target_id": target_id, "reason": reason},
        )
        self.page_id = page_id
        self.target_id = target_id
        self.reason = reason


class NotFoundError(QuireError):
    """Resource not found."""

    def __init__(
        self,
        message: str,
        *,
        resource_type: str | None = None,
        resource_id: str | None = None,
    ) -> None:
        super().__init__(
            message,
            recoverable=False,
            context={"resource_type": resource_type, "resource_id": resource_id},
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


# =============================================================================
# Store Errors
# =============================================================================


class StoreError(QuireError):
    """Record store operation failed."""

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        table: str | None = None,
        recoverable: bool = False,
        **kwargs: Any,
    ) -> None:
        context = kwargs.pop("context", {})
        if operation:
            context["operation"] = operation
        if table:
            context["table"] = table
        super().__init__(message, recoverable=recoverable, context=context)
        self.operation = operation
        self.table = table


class PartialShiftError(StoreError):
    """insert_after created its block but could not shift every sibling.

    The new block exists (``block``); the siblings listed in ``unshifted``
    kept their old positions, so the page may now hold duplicate
    positions until the next successful refresh.
    """

    def __init__(
        self,
        message: str,
        *,
        block: "Block",
        shifted: list[str],
        unshifted: list[str],
    ) -> None:
        super().__init__(
            message,
            operation="insert_after",
            table="blocks",
            recoverable=True,
            context={
                "block_id": block.id,
                "shifted": shifted,
                "unshifted": unshifted,
            },
        )
        self.block = block
        self.shifted = shifted
        self.unshifted = unshifted


# =============================================================================
# RPC Error Code Mapping
# =============================================================================


# Map domain errors to JSON-RPC error codes
ERROR_CODES: dict[type[QuireError], int] = {
    ValidationError: -32000,
    NotAuthenticatedError: -32002,
    NotFoundError: -32003,
    InvalidMoveError: -32005,
    NoPageSelectedError: -32006,
    StoreError: -32020,
    PartialShiftError: -32021,
}


def get_error_code(exc: QuireError) -> int:
    """Get the JSON-RPC error code for a domain error."""
    # Check exact type first
    if type(exc) in ERROR_CODES:
        return ERROR_CODES[type(exc)]
    # Check parent types
    for error_type, code in ERROR_CODES.items():
        if isinstance(exc, error_type):
            return code
    # Default internal error
    return -32603
