"""Clinical service (ward, unit) that consumes supplies through egress."""

from __future__ import annotations

from dataclasses import dataclass

from clinic_stock.domain.validation import require_positive_int, require_text


@dataclass(frozen=True, slots=True)
class ClinicalService:
    """Immutable reference data: an egress destination."""

    id: int
    name: str

    def __post_init__(self) -> None:
        require_positive_int(self.id, "service_id")
        object.__setattr__(self, "name", require_text(self.name, "name"))

    def matches_name(self, name: str) -> bool:
        """Case-insensitive exact match."""
        return self.name.lower() == name.strip().lower()
