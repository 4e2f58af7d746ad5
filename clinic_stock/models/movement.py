"""
Module: clinic_stock.models.movement
Responsibility: ORM persistence for the append-only movement ledger.
Architecture position: Models.  May import from db/base.py only.

Invariants enforced:
    - id comes from the ``movement`` sequence counter (strictly increasing,
      starts at 1), never from MAX(id)+1.
    - quantity > 0 (ck_movement_quantity_positive).
    - EGRESS rows reference a service, INGRESS rows do not
      (ck_movement_kind_service).
    - Rows are never updated or deleted (see db/immutability.py).

Failure modes:
    - IntegrityError on a constraint or foreign-key violation.
    - ImmutabilityViolationError on any ORM UPDATE/DELETE.
"""

from datetime import datetime

from sqlalchemy import CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from clinic_stock.db.base import Base


class MovementModel(Base):
    __tablename__ = "movements"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_movement_quantity_positive"),
        CheckConstraint(
            "(kind = 'ingress' AND service_id IS NULL) OR "
            "(kind = 'egress' AND service_id IS NOT NULL)",
            name="ck_movement_kind_service",
        ),
        Index("idx_movement_occurred_at", "occurred_at"),
        Index("idx_movement_service", "service_id"),
        Index("idx_movement_supply", "supply_code"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=False)

    # MovementKind value
    kind: Mapped[str] = mapped_column(String(10), nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    quantity: Mapped[int] = mapped_column(nullable=False)

    actor_legajo: Mapped[int] = mapped_column(
        ForeignKey("users.legajo"), nullable=False
    )

    supply_code: Mapped[str] = mapped_column(
        String(50), ForeignKey("supplies.code"), nullable=False
    )

    service_id: Mapped[int | None] = mapped_column(
        ForeignKey("clinical_services.id"), nullable=True
    )

    def __repr__(self) -> str:
        return f"<MovementModel #{self.id} {self.kind} {self.quantity} {self.supply_code}>"
