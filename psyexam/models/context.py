"""Caller identity passed explicitly through the service layer."""
from __future__ import annotations

import enum
from dataclasses import dataclass


class Role(str, enum.Enum):
    """Authorization role granted by the identity provider."""

    ADMIN = "admin"
    TESTER = "tester"


@dataclass(frozen=True)
class RequestContext:
    user_id: str
    role: Role
    email: str | None = None
    display_name: str | None = None

    @property
    def author_name(self) -> str:
        """Name recorded as the author of new question sets."""
        return self.display_name or self.email or self.user_id

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN
