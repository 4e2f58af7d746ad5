"""
Module: clinic_stock.models.user
Responsibility: ORM persistence for staff accounts.
Architecture position: Models.  May import from db/base.py only.

Invariants enforced:
    - legajo is the primary key and never changes.
    - created_at is written once (see db/immutability.py).
    - Rows are never deleted; ``active`` is the soft-delete marker.

Notes:
    ``password`` is plaintext, matching the clinic's legacy data.
"""

from datetime import datetime

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from clinic_stock.db.base import Base


class UserModel(Base):
    __tablename__ = "users"

    __table_args__ = (Index("idx_user_active", "active"),)

    legajo: Mapped[int] = mapped_column(primary_key=True, autoincrement=False)

    password: Mapped[str] = mapped_column(String(255), nullable=False)

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)

    last_name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Role value
    role: Mapped[str] = mapped_column(String(20), nullable=False)

    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<UserModel {self.legajo}: {self.first_name} {self.last_name}>"
