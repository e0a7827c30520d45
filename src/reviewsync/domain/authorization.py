"""Explicit authorization scope handed to every store call."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from reviewsync.domain.errors import AccessDenied

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from reviewsync.domain.ports.persistence import BusinessRepository


@dataclass(frozen=True, slots=True)
class AuthorizationContext:
    """The caller's identity and the businesses it may read and write."""

    user_id: str
    business_ids: frozenset[UUID]

    @classmethod
    def for_user(cls, user_id: str, business_ids: Iterable[UUID]) -> AuthorizationContext:
        return cls(user_id=user_id, business_ids=frozenset(business_ids))

    def permits(self, business_id: UUID) -> bool:
        return business_id in self.business_ids

    def require(self, business_id: UUID) -> None:
        if not self.permits(business_id):
            raise AccessDenied(f"User {self.user_id} may not access business {business_id}")

    def granting(self, business_id: UUID) -> AuthorizationContext:
        """Return a context that also covers a business the user just created."""
        return AuthorizationContext(
            user_id=self.user_id, business_ids=self.business_ids | {business_id}
        )


def resolve_authorization(businesses: BusinessRepository, user_id: str) -> AuthorizationContext:
    """Build the context for ``user_id`` from the businesses it owns."""
    if not user_id or not user_id.strip():
        raise AccessDenied("An authenticated user is required")
    return AuthorizationContext.for_user(user_id, businesses.ids_owned_by(user_id))
