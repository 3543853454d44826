"""Canonical ordering of unordered user pairs.

Matches are keyed by ``(identity_low, identity_high)``.  The order is the
lexicographic order of the canonical UUID text (lower-case, hyphenated),
which agrees with PostgreSQL's byte-wise ``uuid`` comparison used by the
``matches`` CHECK constraint.
"""

from __future__ import annotations

import uuid
from typing import NamedTuple, Union

from app.exceptions import InvalidPair

IdentityLike = Union[uuid.UUID, str]


class CanonicalPair(NamedTuple):
    low: uuid.UUID
    high: uuid.UUID

    def other(self, identity: uuid.UUID) -> uuid.UUID:
        """Return the member of the pair that is not ``identity``."""
        if identity == self.low:
            return self.high
        if identity == self.high:
            return self.low
        raise InvalidPair(f"{identity} is not a member of this pair.")


def as_identity(value: IdentityLike) -> uuid.UUID:
    """Coerce a UUID or its string form to ``uuid.UUID``."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError as exc:
        raise InvalidPair(f"{value!r} is not a valid identity.") from exc


def canonicalize(a: IdentityLike, b: IdentityLike) -> CanonicalPair:
    """Map an unordered pair of distinct identities to ``(low, high)``.

    ``canonicalize(a, b) == canonicalize(b, a)`` for every ``a != b``.
    Raises ``InvalidPair`` for a self-pair.
    """
    id_a, id_b = as_identity(a), as_identity(b)
    if id_a == id_b:
        raise InvalidPair()
    if str(id_a) < str(id_b):
        return CanonicalPair(id_a, id_b)
    return CanonicalPair(id_b, id_a)
