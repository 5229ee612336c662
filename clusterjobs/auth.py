"""Caller identity as seen by the repository."""

from dataclasses import dataclass, field
from typing import FrozenSet

ROLE_ADMIN = "admin"
ROLE_API = "api"
ROLE_USER = "user"


@dataclass(frozen=True)
class User:
    username: str
    roles: FrozenSet[str] = field(default_factory=frozenset)

    def has_role(self, role: str) -> bool:
        return role in self.roles

    @property
    def is_admin(self) -> bool:
        return self.has_role(ROLE_ADMIN)
