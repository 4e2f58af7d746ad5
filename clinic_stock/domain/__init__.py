"""Pure domain values for the clinic stock kernel (no I/O)."""

from clinic_stock.domain.clinical_service import ClinicalService
from clinic_stock.domain.clock import Clock, DeterministicClock, SystemClock
from clinic_stock.domain.movement import Movement, MovementDraft, MovementKind
from clinic_stock.domain.supply import Supply, SupplyState
from clinic_stock.domain.user import Role, User

__all__ = [
    "ClinicalService",
    "Clock",
    "DeterministicClock",
    "Movement",
    "MovementDraft",
    "MovementKind",
    "Role",
    "Supply",
    "SupplyState",
    "SystemClock",
    "User",
]
