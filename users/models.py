"""
users/models.py -- Domain dataclasses for user accounts.

Pattern: Data class (pure data container, near-zero logic). Stores and
services do the work.

User carries password_hash because the services need it to verify
credentials. Anything that leaves the service layer is a PublicUser, which
has no hash field at all -- there is nothing to forget to strip.

UserUpdate is the partial-update contract for the store. Each field is either
present or absent (UNSET); only present fields are written. The set of fields
is closed: from_mapping() rejects any key outside it instead of dropping it.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any

from core.errors import InvalidUpdate


class _Unset:
    """Marker for "field not part of this update". Use the UNSET instance."""

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass
class User:
    """A registered account.

    email is unique and compared case-sensitively as stored.
    id is assigned by UserService.register() and never changes.
    """

    email: str
    password_hash: str = field(repr=False)
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    is_active: bool = True
    created_at: datetime | None = None

    def to_public(self) -> PublicUser:
        return PublicUser(
            id=self.id,
            email=self.email,
            is_active=self.is_active,
            created_at=self.created_at,
        )


@dataclass(frozen=True)
class PublicUser:
    """User projection safe to hand to callers outside the service layer."""

    id: uuid.UUID
    email: str
    is_active: bool
    created_at: datetime | None


@dataclass(frozen=True)
class UserUpdate:
    """Partial update of the mutable user fields.

    Usage:
        UserUpdate(password_hash=new_hash)
        UserUpdate.from_mapping({"is_active": False})
    """

    email: str = UNSET
    password_hash: str = UNSET
    is_active: bool = UNSET

    # Expected concrete type per field; checked by from_mapping().
    _TYPES = {"email": str, "password_hash": str, "is_active": bool}

    @classmethod
    def from_mapping(cls, values: dict[str, Any]) -> UserUpdate:
        """Build an update from a dict, rejecting unknown keys and wrong types."""
        unknown = set(values) - set(cls._TYPES)
        if unknown:
            raise InvalidUpdate(f"Unknown user fields: {sorted(unknown)!r}")
        for name, value in values.items():
            if not isinstance(value, cls._TYPES[name]):
                raise InvalidUpdate(f"Field {name!r} must be {cls._TYPES[name].__name__}")
        return cls(**values)

    def present(self) -> dict[str, Any]:
        """Return only the fields that are part of this update."""
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not UNSET}

    def __bool__(self) -> bool:
        return bool(self.present())
