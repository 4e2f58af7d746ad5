"""
Module: clinic_stock.models.supply
Responsibility: ORM persistence for supplies (insumos) and their stock level.
Architecture position: Models.  May import from db/base.py only.

Invariants enforced:
    - code is the primary key (normalized upper-case by the domain layer).
    - stock >= 0 and minimum >= 0 (ck_supply_stock_non_negative,
      ck_supply_minimum_non_negative).  The domain enforces the same
      rule first; the constraint catches anything that bypasses it.

Failure modes:
    - IntegrityError on duplicate code or a negative level.
"""

from datetime import date

from sqlalchemy import CheckConstraint, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from clinic_stock.db.base import Base


class SupplyModel(Base):
    """Persistent supply row.  Converted to ``domain.Supply`` by the SQL store."""

    __tablename__ = "supplies"

    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_supply_stock_non_negative"),
        CheckConstraint("minimum >= 0", name="ck_supply_minimum_non_negative"),
        Index("idx_supply_name", "name"),
    )

    code: Mapped[str] = mapped_column(String(50), primary_key=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Unit label, e.g. "caja", "paquete"
    unit: Mapped[str] = mapped_column(String(50), nullable=False)

    stock: Mapped[int] = mapped_column(nullable=False, default=0)

    # Minimum threshold; stock <= minimum is critical
    minimum: Mapped[int] = mapped_column(nullable=False, default=0)

    # SupplyState value
    state: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    expiration_date: Mapped[date | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<SupplyModel {self.code}: {self.stock}/{self.minimum}>"
