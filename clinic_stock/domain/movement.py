"""
Movement -- immutable ledger entry for an ingress or egress of a supply.

Responsibility:
    Two-phase construction.  Callers build a ``MovementDraft`` (no id,
    optional timestamp); the Movement Ledger validates it and commits it
    into a frozen ``Movement`` carrying the id and timestamp it assigned.
    Nothing ever sets an id on an existing object.

Invariants enforced:
    - quantity > 0.
    - supply and actor references are present.
    - EGRESS requires a service; INGRESS forbids one.

Failure modes:
    - ValidationError from ``MovementDraft.validate()`` on any violation.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from clinic_stock.domain.validation import normalize_code, require_positive_int
from clinic_stock.exceptions import ValidationError


class MovementKind(str, Enum):
    INGRESS = "ingress"
    EGRESS = "egress"


@dataclass(frozen=True, slots=True)
class MovementDraft:
    """A movement that has not been appended to the ledger yet."""

    kind: MovementKind
    quantity: int
    supply_code: str
    actor_legajo: int
    service_id: int | None = None
    occurred_at: datetime | None = None

    def validate(self) -> None:
        """
        Check every field and the kind/service pairing.

        Raises:
            ValidationError: On the first violated rule.
        """
        if not isinstance(self.kind, MovementKind):
            raise ValidationError("kind", f"Unknown movement kind: {self.kind!r}")
        require_positive_int(self.quantity, "quantity")
        if self.supply_code is None:
            raise ValidationError("supply_code", "Movement requires a supply")
        normalize_code(self.supply_code)
        if self.actor_legajo is None:
            raise ValidationError("actor_legajo", "Movement requires an acting user")
        require_positive_int(self.actor_legajo, "actor_legajo")

        if self.kind == MovementKind.INGRESS and self.service_id is not None:
            raise ValidationError(
                "service_id", "INGRESS movements cannot reference a service"
            )
        if self.kind == MovementKind.EGRESS and self.service_id is None:
            raise ValidationError(
                "service_id", "EGRESS movements must reference a service"
            )

    def commit(self, movement_id: int, occurred_at: datetime) -> "Movement":
        """Produce the immutable ledger record.  Called by ledgers only."""
        return Movement(
            id=movement_id,
            kind=self.kind,
            occurred_at=self.occurred_at or occurred_at,
            quantity=self.quantity,
            supply_code=normalize_code(self.supply_code),
            actor_legajo=self.actor_legajo,
            service_id=self.service_id,
        )


@dataclass(frozen=True, slots=True)
class Movement:
    """Committed, immutable movement as stored in the ledger."""

    id: int
    kind: MovementKind
    occurred_at: datetime
    quantity: int
    supply_code: str
    actor_legajo: int
    service_id: int | None = None

    @property
    def signed_quantity(self) -> int:
        """Quantity as it affects stock: positive for ingress."""
        return self.quantity if self.kind == MovementKind.INGRESS else -self.quantity

    def sort_key(self) -> tuple[datetime, int]:
        return (self.occurred_at, self.id)
