"""
Tandem — Domain errors.

Services raise these; ``app.main`` renders every subclass as
``{"detail": ..., "code": ...}`` with the class's HTTP status.
"""

from __future__ import annotations


class TandemError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    code: str = "internal_error"
    default_detail: str = "Internal error."

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class InvalidPair(TandemError, ValueError):
    status_code = 400
    code = "invalid_pair"
    default_detail = "A pair requires two distinct identities."


class InvalidSelfAction(TandemError):
    status_code = 400
    code = "invalid_self_action"
    default_detail = "You cannot like or pass yourself."


class UnknownIdentity(TandemError):
    status_code = 404
    code = "unknown_identity"
    default_detail = "User not found."


class DecisionAlreadyExists(TandemError):
    status_code = 409
    code = "decision_already_exists"
    default_detail = "You have already liked or passed this user."


class NoActiveMatch(TandemError):
    status_code = 403
    code = "no_active_match"
    default_detail = "No active match found between users."


class NotAMatchMember(TandemError):
    status_code = 403
    code = "not_a_match_member"
    default_detail = "Not authorized to view messages for this match."


class StorageUnavailable(TandemError):
    """A backing store failed or did not answer within its deadline.

    Always distinct from a negative answer: callers must never read this as
    "not matched" or "not found".
    """

    status_code = 503
    code = "storage_unavailable"
    default_detail = "Storage is temporarily unavailable."
