"""Persistence contracts and their in-memory and SQLAlchemy backends."""

from clinic_stock.repositories.base import (
    MovementLedger,
    ServiceDirectory,
    SupplyStore,
    UnitOfWork,
    UserRepository,
)
from clinic_stock.repositories.memory import (
    InMemoryDatabase,
    InMemoryUnitOfWork,
    in_memory_uow_factory,
)
from clinic_stock.repositories.sql import SqlUnitOfWork, sql_uow_factory

__all__ = [
    "InMemoryDatabase",
    "InMemoryUnitOfWork",
    "MovementLedger",
    "ServiceDirectory",
    "SqlUnitOfWork",
    "SupplyStore",
    "UnitOfWork",
    "UserRepository",
    "in_memory_uow_factory",
    "sql_uow_factory",
]
