"""ORM models for the clinic stock kernel."""

from clinic_stock.models.clinical_service import ClinicalServiceModel
from clinic_stock.models.movement import MovementModel
from clinic_stock.models.supply import SupplyModel
from clinic_stock.models.user import UserModel


def import_all_models() -> None:
    """Import every mapped class so Base.metadata knows all tables."""
    import clinic_stock.services.sequence_service  # noqa: F401  (SequenceCounter)


__all__ = [
    "ClinicalServiceModel",
    "MovementModel",
    "SupplyModel",
    "UserModel",
    "import_all_models",
]
