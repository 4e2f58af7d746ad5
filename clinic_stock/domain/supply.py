"""
Supply -- a trackable medical item and its stock primitives.

Responsibility:
    Holds the stock level of one supply and the only two operations that
    change it (``increase`` / ``decrease``).  Criticality and expiry are
    derived on every access, never stored.

Invariants enforced:
    - stock >= 0 at all times; ``decrease`` never overdraws.
    - code is trimmed and upper-cased at construction.
    - critical == (stock <= minimum), recomputed on each read.

Failure modes:
    - ValidationError on construction with empty fields or negative levels.
    - ValidationError on non-positive increase/decrease amounts.
    - InsufficientStockError when decreasing by more than the stock.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum

from clinic_stock.domain.validation import (
    normalize_code,
    require_non_negative_int,
    require_positive_int,
    require_text,
)
from clinic_stock.exceptions import InsufficientStockError, ValidationError


class SupplyState(str, Enum):
    """Supply lifecycle state."""

    ACTIVE = "active"
    INACTIVE = "inactive"


@dataclass(slots=True)
class Supply:
    """
    Medical supply with its current stock level.

    Contract:
        Instances handed out by a Supply Store are copies.  Mutating one
        has no effect on storage until it is passed to ``update()``.
    """

    code: str
    name: str
    unit: str
    stock: int
    minimum: int
    state: SupplyState = SupplyState.ACTIVE
    expiration_date: date | None = None

    def __post_init__(self) -> None:
        self.code = normalize_code(self.code)
        self.name = require_text(self.name, "name")
        self.unit = require_text(self.unit, "unit")
        self.stock = require_non_negative_int(self.stock, "stock")
        self.minimum = require_non_negative_int(self.minimum, "minimum")
        if not isinstance(self.state, SupplyState):
            try:
                self.state = SupplyState(self.state)
            except ValueError as e:
                raise ValidationError("state", f"Unknown supply state: {self.state}") from e

    @property
    def critical(self) -> bool:
        return self.stock <= self.minimum

    @property
    def margin(self) -> int:
        """Units above the minimum threshold; negative when below it."""
        return self.stock - self.minimum

    @property
    def has_stock(self) -> bool:
        return self.stock > 0

    @property
    def is_active(self) -> bool:
        return self.state == SupplyState.ACTIVE

    def is_expired(self, today: date) -> bool:
        return self.expiration_date is not None and self.expiration_date < today

    def increase(self, amount: int) -> None:
        require_positive_int(amount, "quantity")
        self.stock += amount

    def decrease(self, amount: int) -> None:
        require_positive_int(amount, "quantity")
        if amount > self.stock:
            raise InsufficientStockError(self.code, amount, self.stock)
        self.stock -= amount

    def copy(self) -> "Supply":
        return Supply(
            code=self.code,
            name=self.name,
            unit=self.unit,
            stock=self.stock,
            minimum=self.minimum,
            state=self.state,
            expiration_date=self.expiration_date,
        )

    def __repr__(self) -> str:
        return f"<Supply {self.code}: {self.stock}/{self.minimum} {self.unit}>"
