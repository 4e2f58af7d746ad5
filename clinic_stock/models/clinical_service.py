"""
Module: clinic_stock.models.clinical_service
Responsibility: ORM persistence for clinical services (egress destinations).
Architecture position: Models.  May import from db/base.py only.
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from clinic_stock.db.base import Base


class ClinicalServiceModel(Base):
    __tablename__ = "clinical_services"

    # Ids are assigned by the clinic, not generated
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<ClinicalServiceModel {self.id}: {self.name}>"
