"""
Module: clinic_stock.repositories.sql
Responsibility: SQLAlchemy backend.  Each repository receives the Session
    of its unit of work explicitly; there is no ambient or thread-local
    transaction.
Architecture position: Repositories.  Imports db/, models/, domain/ and
    services/sequence_service.py.

Invariants enforced:
    - Repositories only ``flush()``.  SqlUnitOfWork alone commits or
      rolls back, so the supply update and the movement append of one
      stock operation land in the same database transaction.
    - ``find_by_code(..., for_update=True)`` issues SELECT ... FOR UPDATE
      on the supply row, serializing check-then-decrement across
      processes.
    - Movement ids come from SequenceService (locked counter row).
    - Repositories return domain values, never ORM instances.

Failure modes:
    - PersistenceError wrapping any SQLAlchemyError (cause chained).
    - Domain errors (duplicates, not found, validation) as documented in
      repositories/base.py.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from clinic_stock.domain.clinical_service import ClinicalService
from clinic_stock.domain.clock import Clock, SystemClock, utc_day_bounds
from clinic_stock.domain.movement import Movement, MovementDraft, MovementKind
from clinic_stock.domain.supply import Supply, SupplyState
from clinic_stock.domain.user import Role, User
from clinic_stock.domain.validation import normalize_code
from clinic_stock.exceptions import (
    DuplicateServiceError,
    DuplicateSupplyError,
    DuplicateUserError,
    PersistenceError,
    SupplyNotFoundError,
    UserNotFoundError,
)
from clinic_stock.logging_config import get_logger
from clinic_stock.models.clinical_service import ClinicalServiceModel
from clinic_stock.models.movement import MovementModel
from clinic_stock.models.supply import SupplyModel
from clinic_stock.models.user import UserModel
from clinic_stock.repositories.base import (
    MovementLedger,
    ServiceDirectory,
    SupplyStore,
    UnitOfWork,
    UserRepository,
)
from clinic_stock.services.sequence_service import SequenceService

logger = get_logger("repositories.sql")


@contextmanager
def _wrap(operation: str) -> Iterator[None]:
    """Translate driver/ORM failures into PersistenceError."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error(
            "persistence_failure",
            extra={"operation": operation, "error_type": type(exc).__name__},
        )
        raise PersistenceError(operation, str(exc.orig if hasattr(exc, "orig") else exc)) from exc


# ---------------------------------------------------------------------------
# ORM <-> domain conversion
# ---------------------------------------------------------------------------


def _supply_to_dto(row: SupplyModel) -> Supply:
    return Supply(
        code=row.code,
        name=row.name,
        unit=row.unit,
        stock=row.stock,
        minimum=row.minimum,
        state=SupplyState(row.state),
        expiration_date=row.expiration_date,
    )


def _movement_to_dto(row: MovementModel) -> Movement:
    return Movement(
        id=row.id,
        kind=MovementKind(row.kind),
        occurred_at=row.occurred_at,
        quantity=row.quantity,
        supply_code=row.supply_code,
        actor_legajo=row.actor_legajo,
        service_id=row.service_id,
    )


def _service_to_dto(row: ClinicalServiceModel) -> ClinicalService:
    return ClinicalService(id=row.id, name=row.name)


def _user_to_dto(row: UserModel) -> User:
    return User(
        legajo=row.legajo,
        password=row.password,
        first_name=row.first_name,
        last_name=row.last_name,
        role=Role(row.role),
        active=row.active,
        created_at=row.created_at,
    )


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class SqlSupplyStore(SupplyStore):
    def __init__(self, session: Session):
        self.session = session

    def find_by_code(self, code: str, *, for_update: bool = False) -> Supply | None:
        stmt = select(SupplyModel).where(SupplyModel.code == normalize_code(code))
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        with _wrap("supply.find_by_code"):
            row = self.session.execute(stmt).scalar_one_or_none()
        return _supply_to_dto(row) if row else None

    def find_all(self) -> list[Supply]:
        with _wrap("supply.find_all"):
            rows = self.session.execute(
                select(SupplyModel).order_by(SupplyModel.code)
            ).scalars().all()
        return [_supply_to_dto(r) for r in rows]

    def find_critical(self) -> list[Supply]:
        stmt = (
            select(SupplyModel)
            .where(SupplyModel.stock <= SupplyModel.minimum)
            .order_by(SupplyModel.stock - SupplyModel.minimum, SupplyModel.code)
        )
        with _wrap("supply.find_critical"):
            rows = self.session.execute(stmt).scalars().all()
        return [_supply_to_dto(r) for r in rows]

    def search_by_name(self, fragment: str) -> list[Supply]:
        needle = fragment.strip().lower()
        stmt = (
            select(SupplyModel)
            .where(func.lower(SupplyModel.name).contains(needle, autoescape=True))
            .order_by(func.lower(SupplyModel.name), SupplyModel.code)
        )
        with _wrap("supply.search_by_name"):
            rows = self.session.execute(stmt).scalars().all()
        return [_supply_to_dto(r) for r in rows]

    def save(self, supply: Supply) -> None:
        with _wrap("supply.save"):
            if self.session.get(SupplyModel, supply.code) is not None:
                raise DuplicateSupplyError(supply.code)
            self.session.add(
                SupplyModel(
                    code=supply.code,
                    name=supply.name,
                    unit=supply.unit,
                    stock=supply.stock,
                    minimum=supply.minimum,
                    state=supply.state.value,
                    expiration_date=supply.expiration_date,
                )
            )
            self.session.flush()

    def update(self, supply: Supply) -> None:
        with _wrap("supply.update"):
            row = self.session.get(SupplyModel, supply.code)
            if row is None:
                raise SupplyNotFoundError(supply.code)
            row.name = supply.name
            row.unit = supply.unit
            row.stock = supply.stock
            row.minimum = supply.minimum
            row.state = supply.state.value
            row.expiration_date = supply.expiration_date
            self.session.flush()


class SqlMovementLedger(MovementLedger):
    def __init__(self, session: Session, clock: Clock):
        self.session = session
        self._clock = clock
        self._sequences = SequenceService(session)

    def append(self, draft: MovementDraft) -> Movement:
        draft.validate()
        with _wrap("movement.append"):
            movement_id = self._sequences.next_value(SequenceService.MOVEMENT)
            movement = draft.commit(movement_id, self._clock.now())
            self.session.add(
                MovementModel(
                    id=movement.id,
                    kind=movement.kind.value,
                    occurred_at=movement.occurred_at,
                    quantity=movement.quantity,
                    actor_legajo=movement.actor_legajo,
                    supply_code=movement.supply_code,
                    service_id=movement.service_id,
                )
            )
            self.session.flush()
        return movement

    def _ordered(self):
        return select(MovementModel).order_by(
            MovementModel.occurred_at.desc(), MovementModel.id.desc()
        )

    def find_all(self) -> list[Movement]:
        with _wrap("movement.find_all"):
            rows = self.session.execute(self._ordered()).scalars().all()
        return [_movement_to_dto(r) for r in rows]

    def find_in_period_and_service(
        self,
        start: date,
        end: date,
        service_id: int | None = None,
    ) -> list[Movement]:
        lower, upper = utc_day_bounds(start, end)
        stmt = self._ordered().where(
            MovementModel.occurred_at >= lower,
            MovementModel.occurred_at < upper,
        )
        if service_id is not None:
            stmt = stmt.where(MovementModel.service_id == service_id)
        with _wrap("movement.find_in_period_and_service"):
            rows = self.session.execute(stmt).scalars().all()
        return [_movement_to_dto(r) for r in rows]

    def net_quantity(self, supply_code: str) -> int:
        code = normalize_code(supply_code)
        with _wrap("movement.net_quantity"):
            rows = self.session.execute(
                select(MovementModel.kind, func.coalesce(func.sum(MovementModel.quantity), 0))
                .where(MovementModel.supply_code == code)
                .group_by(MovementModel.kind)
            ).all()
        totals = {kind: int(total) for kind, total in rows}
        return totals.get(MovementKind.INGRESS.value, 0) - totals.get(
            MovementKind.EGRESS.value, 0
        )


class SqlServiceDirectory(ServiceDirectory):
    def __init__(self, session: Session):
        self.session = session

    def find_by_id(self, service_id: int) -> ClinicalService | None:
        with _wrap("service.find_by_id"):
            row = self.session.get(ClinicalServiceModel, service_id)
        return _service_to_dto(row) if row else None

    def find_by_name(self, name: str) -> ClinicalService | None:
        stmt = (
            select(ClinicalServiceModel)
            .where(func.lower(ClinicalServiceModel.name) == name.strip().lower())
            .order_by(ClinicalServiceModel.id)
            .limit(1)
        )
        with _wrap("service.find_by_name"):
            row = self.session.execute(stmt).scalar_one_or_none()
        return _service_to_dto(row) if row else None

    def find_all(self) -> list[ClinicalService]:
        with _wrap("service.find_all"):
            rows = self.session.execute(
                select(ClinicalServiceModel).order_by(ClinicalServiceModel.id)
            ).scalars().all()
        return [_service_to_dto(r) for r in rows]

    def save(self, service: ClinicalService) -> None:
        with _wrap("service.save"):
            if self.session.get(ClinicalServiceModel, service.id) is not None:
                raise DuplicateServiceError(service.id)
            self.session.add(ClinicalServiceModel(id=service.id, name=service.name))
            self.session.flush()


class SqlUserRepository(UserRepository):
    def __init__(self, session: Session):
        self.session = session

    def find_by_legajo(self, legajo: int) -> User | None:
        with _wrap("user.find_by_legajo"):
            row = self.session.get(UserModel, legajo)
        return _user_to_dto(row) if row else None

    def find_by_credentials(self, legajo: int, password: str) -> User | None:
        stmt = select(UserModel).where(
            UserModel.legajo == legajo,
            UserModel.password == password,
            UserModel.active.is_(True),
        )
        with _wrap("user.find_by_credentials"):
            row = self.session.execute(stmt).scalar_one_or_none()
        return _user_to_dto(row) if row else None

    def find_all_active(self) -> list[User]:
        stmt = (
            select(UserModel)
            .where(UserModel.active.is_(True))
            .order_by(UserModel.legajo)
        )
        with _wrap("user.find_all_active"):
            rows = self.session.execute(stmt).scalars().all()
        return [_user_to_dto(r) for r in rows]

    def save(self, user: User) -> None:
        with _wrap("user.save"):
            if self.session.get(UserModel, user.legajo) is not None:
                raise DuplicateUserError(user.legajo)
            self.session.add(
                UserModel(
                    legajo=user.legajo,
                    password=user.password,
                    first_name=user.first_name,
                    last_name=user.last_name,
                    role=user.role.value,
                    active=user.active,
                    created_at=user.created_at,
                )
            )
            self.session.flush()

    def update(self, user: User) -> None:
        with _wrap("user.update"):
            row = self.session.get(UserModel, user.legajo)
            if row is None:
                raise UserNotFoundError(user.legajo)
            row.password = user.password
            row.first_name = user.first_name
            row.last_name = user.last_name
            row.role = user.role.value
            row.active = user.active
            self.session.flush()

    def soft_delete(self, legajo: int) -> None:
        with _wrap("user.soft_delete"):
            row = self.session.get(UserModel, legajo)
            if row is None:
                raise UserNotFoundError(legajo)
            row.active = False
            self.session.flush()


# ---------------------------------------------------------------------------
# Unit of work
# ---------------------------------------------------------------------------


class SqlUnitOfWork(UnitOfWork):
    """
    One SQLAlchemy session, one database transaction.

    The session is created on ``__enter__``, handed explicitly to every
    repository, committed by ``commit()`` and always closed on exit.
    """

    def __init__(self, session_factory: sessionmaker[Session], clock: Clock | None = None):
        super().__init__(clock or SystemClock())
        self._session_factory = session_factory
        self.session: Session | None = None

    def _begin(self) -> None:
        self.session = self._session_factory()
        self.supplies = SqlSupplyStore(self.session)
        self.movements = SqlMovementLedger(self.session, self.clock)
        self.services = SqlServiceDirectory(self.session)
        self.users = SqlUserRepository(self.session)

    def _commit(self) -> None:
        with _wrap("commit"):
            self.session.commit()

    def rollback(self) -> None:
        if self.session is not None:
            with _wrap("rollback"):
                self.session.rollback()

    def _close(self) -> None:
        if self.session is not None:
            self.session.close()
            self.session = None


def sql_uow_factory(
    session_factory: sessionmaker[Session], clock: Clock | None = None
) -> Callable[[], SqlUnitOfWork]:
    """Factory handed to services; each call opens a new unit of work."""

    def factory() -> SqlUnitOfWork:
        return SqlUnitOfWork(session_factory, clock)

    return factory
