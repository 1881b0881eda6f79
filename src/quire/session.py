"""Request-scoped owner context.

Every PageTree and BlockList is built with a Session instead of reading a
module-level "current user", so several owners (or tests) can coexist in
one process.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import NotAuthenticatedError


@dataclass(frozen=True)
class Session:
    """The principal on whose behalf operations run."""

    owner_id: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.owner_id)

    def require_owner(self, operation: str) -> str:
        """Return the owner id or raise NotAuthenticatedError."""
        if not self.owner_id:
            raise NotAuthenticatedError(operation=operation)
        return self.owner_id
