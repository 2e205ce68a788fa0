"""
auth/models.py -- Domain dataclass for login sessions.

Pattern: Data class (pure data container). Mirrors users/models.py --
dataclasses own domain shape; stores and services do the work.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class Session:
    """A server-side login session.

    id is the bearer token itself: whoever presents it is authenticated as
    user_id until expires_on. There is no revoked flag -- deleting the row is
    revocation. repr hides the token so it does not end up in logs.
    """

    id: str = field(repr=False)
    user_id: uuid.UUID
    expires_on: datetime  # UTC

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_on
