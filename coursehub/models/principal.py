from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """Pre-authenticated identity extracted from a verified bearer token.

    user_id: subject from the JWT (opaque to this service)
    roles: platform roles (student, teacher, admin)
    """

    user_id: str
    roles: frozenset[str]

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def has_any_role(self, roles: set[str]) -> bool:
        return bool(self.roles & roles)

    def is_admin(self) -> bool:
        return "admin" in self.roles
