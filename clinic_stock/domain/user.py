"""
User -- clinic staff account keyed by legajo.

Responsibility:
    Immutable value describing an account.  Edits produce new instances
    (``dataclasses.replace``); ``created_at`` is stamped once when the
    instance is first built and carried over by every derived copy.

Invariants enforced:
    - legajo is the identity and never changes.
    - created_at never changes once set.

Notes:
    Passwords are stored and compared as plaintext.  This is a legacy
    trait of the clinic's existing data, not a recommendation; a salted
    hash comparison belongs at the AccountService boundary.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

from clinic_stock.domain.clock import SystemClock
from clinic_stock.exceptions import ValidationError


class Role(str, Enum):
    ADMIN = "admin"
    AUXILIARY = "auxiliary"


def _stamp() -> datetime:
    return SystemClock().now()


@dataclass(frozen=True, slots=True)
class User:
    legajo: int
    password: str
    first_name: str
    last_name: str
    role: Role | None
    active: bool = True
    created_at: datetime = field(default_factory=_stamp)

    def __post_init__(self) -> None:
        if self.role is not None and not isinstance(self.role, Role):
            try:
                object.__setattr__(self, "role", Role(self.role))
            except ValueError as e:
                raise ValidationError("role", f"Unknown role: {self.role}") from e

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def deactivated(self) -> "User":
        return replace(self, active=False)

    def with_created_at(self, created_at: datetime) -> "User":
        return replace(self, created_at=created_at)

    def __repr__(self) -> str:
        # Password deliberately omitted
        return (
            f"User(legajo={self.legajo}, name={self.full_name!r}, "
            f"role={self.role.value if self.role else None}, active={self.active})"
        )
