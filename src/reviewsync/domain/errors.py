"""Error taxonomy for reconciliation runs and the OAuth handshake.

Every error carries a stable ``code`` so callers can branch on it and render
``message`` to users without exposing tracebacks.
"""

from __future__ import annotations

from typing import ClassVar


class SyncError(RuntimeError):
    code: ClassVar[str] = "SYNC_ERROR"

    def __init__(self, message: str, *, details: object = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"code": self.code, "message": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class NoConnection(SyncError):
    """No connected provider account exists for the business."""

    code = "NO_CONNECTION"


class Unauthorized(SyncError):
    """The provider rejected the access token (401/403)."""

    code = "UNAUTHORIZED"

    def __init__(self, message: str, *, status: int, body: str | None = None) -> None:
        super().__init__(message, details={"status": status, "body": body})
        self.status = status
        self.body = body


class RefreshFailed(SyncError):
    code = "REFRESH_FAILED"

    def __init__(self, message: str, *, status: int | None = None, body: str | None = None) -> None:
        super().__init__(message, details={"status": status, "body": body})
        self.status = status
        self.body = body


class ProviderError(SyncError):
    """Any other non-2xx provider response, or a transport failure after retries."""

    code = "PROVIDER_ERROR"

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        body: str | None = None,
        reason: str | None = None,
    ) -> None:
        details: dict[str, object] = {"status": status, "body": body}
        if reason is not None:
            details["reason"] = reason
        super().__init__(message, details=details)
        self.status = status
        self.body = body
        self.reason = reason


class InvalidIdentifier(SyncError):
    code = "INVALID_IDENTIFIER"

    def __init__(self, identifier: str) -> None:
        super().__init__(f"Identifier {identifier!r} is not a canonical id")
        self.identifier = identifier


class RecordMergeError(SyncError):
    code = "RECORD_MERGE_ERROR"

    def __init__(self, record_id: str | None, message: str) -> None:
        super().__init__(message, details={"record_id": record_id})
        self.record_id = record_id


class TransactionError(SyncError):
    code = "TRANSACTION_ERROR"


class AccessDenied(SyncError):
    """The authenticated identity may not act on the requested business."""

    code = "ACCESS_DENIED"


class InvalidOAuthState(SyncError):
    code = "INVALID_STATE"


class NonceReplayed(InvalidOAuthState):
    code = "NONCE_REPLAYED"


class ClientNotFound(SyncError):
    code = "NOT_FOUND"


class ReviewAlreadySubmitted(SyncError):
    """The client already left an internal review."""

    code = "REVIEW_ALREADY_SUBMITTED"


class DuplicateClient(SyncError):
    """Another client of the business, deleted or not, already uses this email."""

    code = "DUPLICATE_CLIENT"
