"""
Module: clinic_stock.bootstrap
Responsibility: Wires a running application from a ClinicConfig: the
    persistence backend, the unit-of-work factory, the login tracker, the
    alert sink, the services and the report selector.  Seeds reference
    data (services, supplies, users) idempotently.
Architecture position: Outermost layer.  The only module that knows both
    concrete backends.

Invariants enforced:
    - Exactly one LoginAttemptTracker per Application; every AccountService
      call of that Application shares it.
    - Seeding never overwrites: existing keys are left untouched, so
      rebuilding against a populated database is safe.

Failure modes:
    - ValueError from config parsing (unknown backend, bad limits).
    - PersistenceError if the SQL backend cannot be initialized.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from clinic_stock.config import ClinicConfig, SeedData, load_config
from clinic_stock.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from clinic_stock.domain.clinical_service import ClinicalService
from clinic_stock.domain.clock import Clock, SystemClock
from clinic_stock.domain.supply import Supply
from clinic_stock.domain.user import User
from clinic_stock.logging_config import configure_logging, get_logger
from clinic_stock.repositories.base import UnitOfWork
from clinic_stock.repositories.memory import InMemoryDatabase, in_memory_uow_factory
from clinic_stock.repositories.sql import sql_uow_factory
from clinic_stock.selectors.report_selector import ReportSelector
from clinic_stock.services.account_service import AccountService, LoginAttemptTracker
from clinic_stock.services.alerts import LoggingAlertSink, StockAlertSink
from clinic_stock.services.stock_service import StockService
from clinic_stock.services.user_admin_service import UserAdminService

logger = get_logger("bootstrap")


@dataclass
class Application:
    """Everything a caller (menu, script, test) needs, already wired."""

    config: ClinicConfig
    clock: Clock
    uow_factory: Callable[[], UnitOfWork]
    login_tracker: LoginAttemptTracker
    stock: StockService
    accounts: AccountService
    users: UserAdminService
    reports: ReportSelector

    def close(self) -> None:
        """Release the SQL engine, if one was created."""
        if self.config.backend == "sql":
            reset_engine()


def _build_uow_factory(config: ClinicConfig, clock: Clock) -> Callable[[], UnitOfWork]:
    if config.backend == "sql":
        init_engine_from_url(config.database.url, echo=config.database.echo)
        create_tables()
        return sql_uow_factory(get_session_factory(), clock)
    return in_memory_uow_factory(InMemoryDatabase(), clock)


def seed_reference_data(uow_factory: Callable[[], UnitOfWork], seed: SeedData) -> dict[str, int]:
    """
    Insert the seed entries whose keys do not exist yet.

    Returns:
        Count of inserted rows per kind.
    """
    inserted = {"services": 0, "supplies": 0, "users": 0}
    with uow_factory() as uow:
        for s in seed.services:
            if uow.services.find_by_id(s.id) is None:
                uow.services.save(ClinicalService(id=s.id, name=s.name))
                inserted["services"] += 1
        for s in seed.supplies:
            if uow.supplies.find_by_code(s.code) is None:
                uow.supplies.save(
                    Supply(
                        code=s.code,
                        name=s.name,
                        unit=s.unit,
                        stock=s.stock,
                        minimum=s.minimum,
                        state=s.state,
                        expiration_date=s.expiration_date,
                    )
                )
                inserted["supplies"] += 1
        for u in seed.users:
            if uow.users.find_by_legajo(u.legajo) is None:
                uow.users.save(
                    User(
                        legajo=u.legajo,
                        password=u.password,
                        first_name=u.first_name,
                        last_name=u.last_name,
                        role=u.role,
                        active=u.active,
                        created_at=uow.clock.now(),
                    )
                )
                inserted["users"] += 1
        uow.commit()
    logger.info("reference_data_seeded", extra=inserted)
    return inserted


def build_application(
    config: ClinicConfig | None = None,
    *,
    clock: Clock | None = None,
    alert_sink: StockAlertSink | None = None,
    seed: bool = True,
) -> Application:
    """
    Build a fully wired Application.

    Args:
        config: Parsed configuration; bundled defaults when None.
        clock: Time source for every component; SystemClock when None.
        alert_sink: Receiver of critical-stock alerts; logging sink when None.
        seed: Insert the configured reference data.
    """
    configure_logging()
    config = config or load_config()
    clock = clock or SystemClock()

    uow_factory = _build_uow_factory(config, clock)
    if seed:
        seed_reference_data(uow_factory, config.seed)

    tracker = LoginAttemptTracker(config.security.max_failed_logins)
    app = Application(
        config=config,
        clock=clock,
        uow_factory=uow_factory,
        login_tracker=tracker,
        stock=StockService(
            uow_factory,
            clock=clock,
            alert_sink=alert_sink or LoggingAlertSink(),
            expiration_days_ahead=config.alerts.expiration_days_ahead,
        ),
        accounts=AccountService(uow_factory, tracker, clock=clock),
        users=UserAdminService(
            uow_factory,
            clock=clock,
            min_password_length=config.security.min_password_length,
        ),
        reports=ReportSelector(uow_factory, clock=clock),
    )
    logger.info("application_built", extra={"backend": config.backend})
    return app
