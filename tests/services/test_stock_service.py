"""
Tests for StockService.

Covers:
- Ingress and egress happy paths
- The GAS-01 scenario (egress to critical, then insufficient stock)
- Validation before lookup, not-found and inactive supplies
- Atomicity when the ledger append fails
- Advisory critical-stock alerts
- Stock queries (critical, expiring, availability, search)
"""

from datetime import date

import pytest

from clinic_stock.domain.clinical_service import ClinicalService
from clinic_stock.domain.movement import MovementKind
from clinic_stock.domain.supply import Supply, SupplyState
from clinic_stock.exceptions import (
    DuplicateServiceError,
    DuplicateSupplyError,
    InsufficientStockError,
    PersistenceError,
    ServiceNotFoundError,
    SupplyInactiveError,
    SupplyNotFoundError,
    ValidationError,
)
from clinic_stock.services.stock_service import StockService


def _stock_of(uow_factory, code: str) -> int:
    with uow_factory() as uow:
        return uow.supplies.find_by_code(code).stock


def _movements(uow_factory):
    with uow_factory() as uow:
        return uow.movements.find_all()


class _BrokenLedgerUnitOfWork:
    """Delegates to a real unit of work whose ledger append always fails."""

    def __init__(self, inner):
        self._inner = inner

    def __enter__(self):
        uow = self._inner.__enter__()

        def broken_append(draft):
            raise PersistenceError("movement.append", "disk full")

        uow.movements.append = broken_append
        return uow

    def __exit__(self, *exc_info):
        return self._inner.__exit__(*exc_info)


class TestIngress:
    def test_ingress_increases_stock_and_records_movement(
        self, stock_service, seeded, admin, clock
    ):
        movement = stock_service.register_ingress("gas-01", 20, admin)

        assert movement.id == 1
        assert movement.kind is MovementKind.INGRESS
        assert movement.quantity == 20
        assert movement.service_id is None
        assert movement.actor_legajo == 1000
        assert movement.occurred_at == clock.now()
        assert _stock_of(seeded, "GAS-01") == 70
        assert _movements(seeded) == [movement]

    def test_ingress_unknown_supply(self, stock_service, seeded, admin):
        with pytest.raises(SupplyNotFoundError) as exc_info:
            stock_service.register_ingress("NOPE-1", 5, admin)
        assert exc_info.value.identifier == "NOPE-1"
        assert _movements(seeded) == []

    @pytest.mark.parametrize("quantity", [0, -5, True, 1.5, None])
    def test_ingress_invalid_quantity(self, stock_service, seeded, admin, quantity):
        with pytest.raises(ValidationError):
            stock_service.register_ingress("GAS-01", quantity, admin)
        assert _stock_of(seeded, "GAS-01") == 50

    def test_ingress_requires_actor(self, stock_service):
        with pytest.raises(ValidationError) as exc_info:
            stock_service.register_ingress("GAS-01", 5, None)
        assert exc_info.value.field == "actor"

    def test_validation_happens_before_lookup(self, stock_service, admin):
        # Unknown code, but the quantity error must win
        with pytest.raises(ValidationError):
            stock_service.register_ingress("NOPE-1", 0, admin)

    def test_ingress_rejected_for_inactive_supply(self, stock_service, seeded, admin):
        stock_service.register_supply(
            Supply("OLD-01", "Descontinuado", "caja", 3, 1, state=SupplyState.INACTIVE)
        )
        with pytest.raises(SupplyInactiveError):
            stock_service.register_ingress("OLD-01", 5, admin)
        assert _stock_of(seeded, "OLD-01") == 3


class TestEgress:
    def test_gas01_scenario(self, stock_service, seeded, admin, alert_sink):
        movement = stock_service.register_egress("GAS-01", 45, service_id=1, actor=admin)

        supply = stock_service.find_supply("GAS-01")
        assert supply.stock == 5
        assert supply.critical is True
        assert movement.kind is MovementKind.EGRESS
        assert movement.service_id == 1
        assert len(_movements(seeded)) == 1

        with pytest.raises(InsufficientStockError) as exc_info:
            stock_service.register_egress("GAS-01", 10, service_id=1, actor=admin)
        assert exc_info.value.available == 5
        assert exc_info.value.requested == 10
        assert _stock_of(seeded, "GAS-01") == 5
        assert len(_movements(seeded)) == 1

    def test_egress_to_exactly_zero(self, stock_service, seeded, auxiliary):
        stock_service.register_egress("BAR-01", 25, service_id=3, actor=auxiliary)
        assert _stock_of(seeded, "BAR-01") == 0

    def test_egress_unknown_service(self, stock_service, seeded, admin):
        with pytest.raises(ServiceNotFoundError) as exc_info:
            stock_service.register_egress("GAS-01", 1, service_id=99, actor=admin)
        assert exc_info.value.identifier == 99
        assert _stock_of(seeded, "GAS-01") == 50

    def test_egress_unknown_supply(self, stock_service, admin):
        with pytest.raises(SupplyNotFoundError):
            stock_service.register_egress("NOPE-1", 1, service_id=1, actor=admin)

    @pytest.mark.parametrize("service_id", [0, -1, None])
    def test_egress_invalid_service_id(self, stock_service, admin, service_id):
        with pytest.raises(ValidationError):
            stock_service.register_egress("GAS-01", 1, service_id=service_id, actor=admin)

    def test_ledger_failure_leaves_stock_unchanged(self, seeded, admin, clock):
        """A failing append rolls back the supply update of the same unit of work."""
        service = StockService(lambda: _BrokenLedgerUnitOfWork(seeded()), clock=clock)
        with pytest.raises(PersistenceError):
            service.register_egress("GAS-01", 5, service_id=1, actor=admin)

        assert _stock_of(seeded, "GAS-01") == 50
        assert _movements(seeded) == []

    def test_ledger_failure_rolls_back_ingress(self, seeded, admin, clock):
        service = StockService(lambda: _BrokenLedgerUnitOfWork(seeded()), clock=clock)
        with pytest.raises(PersistenceError):
            service.register_ingress("GUA-01", 12, admin)

        assert _stock_of(seeded, "GUA-01") == 40
        assert _movements(seeded) == []


class TestCriticalAlerts:
    def test_alert_emitted_after_egress_to_critical(self, stock_service, admin, alert_sink):
        stock_service.register_egress("GAS-01", 40, service_id=1, actor=admin)
        (alert,) = alert_sink.alerts
        assert alert.supply_code == "GAS-01"
        assert alert.stock == 10
        assert alert.minimum == 10

    def test_no_alert_when_still_above_minimum(self, stock_service, admin, alert_sink):
        stock_service.register_egress("GAS-01", 39, service_id=1, actor=admin)
        assert alert_sink.alerts == ()

    def test_failing_sink_does_not_change_outcome(self, seeded, admin, clock, captured_logs):
        class ExplodingSink:
            def critical_stock(self, supply, movement):
                raise RuntimeError("pager offline")

        service = StockService(seeded, clock=clock, alert_sink=ExplodingSink())
        movement = service.register_egress("GAS-01", 45, service_id=2, actor=admin)

        assert movement.id == 1
        assert _stock_of(seeded, "GAS-01") == 5
        logs = captured_logs()
        assert any(r["message"] == "critical_stock_alert_failed" for r in logs)

    def test_default_sink_logs_warning(self, seeded, admin, clock, captured_logs):
        service = StockService(seeded, clock=clock)
        service.register_egress("GAS-01", 45, service_id=1, actor=admin)

        alerts = [r for r in captured_logs() if r["message"] == "critical_stock_alert"]
        assert len(alerts) == 1
        assert alerts[0]["level"] == "WARNING"
        assert alerts[0]["stock"] == 5

    def test_egress_logs_carry_actor_context(self, stock_service, admin, captured_logs):
        stock_service.register_egress("GAS-01", 1, service_id=1, actor=admin)
        (record,) = [r for r in captured_logs() if r["message"] == "egress_registered"]
        assert record["actor_id"] == "1000"
        assert record["supply_code"] == "GAS-01"
        assert record["stock_after"] == 49

    def test_post_commit_logs_carry_movement_id(self, seeded, admin, clock, captured_logs):
        service = StockService(seeded, clock=clock)
        service.register_ingress("GAS-01", 2, admin)
        movement = service.register_egress("GAS-01", 45, service_id=1, actor=admin)

        records = {r["message"]: r for r in captured_logs()}
        assert records["ingress_registered"]["movement_id"] == "1"
        assert records["egress_registered"]["movement_id"] == str(movement.id)
        assert records["critical_stock_alert"]["movement_id"] == str(movement.id)


class TestQueries:
    def test_critical_supplies(self, stock_service, admin):
        assert stock_service.critical_supplies() == []
        stock_service.register_egress("BAR-01", 5, service_id=1, actor=admin)
        stock_service.register_egress("GAS-01", 45, service_id=1, actor=admin)
        assert [s.code for s in stock_service.critical_supplies()] == ["GAS-01", "BAR-01"]

    def test_expiring_supplies_window(self, stock_service, clock):
        today = clock.today()
        for code, expires in (
            ("EXP-PAST", date(2023, 12, 31)),
            ("EXP-TODAY", today),
            ("EXP-EDGE", date(2024, 1, 31)),
            ("EXP-LATER", date(2024, 2, 1)),
        ):
            stock_service.register_supply(
                Supply(code, f"Lote {code}", "unidad", 1, 0, expiration_date=expires)
            )

        expiring = stock_service.expiring_supplies(30)
        assert [s.code for s in expiring] == ["EXP-TODAY", "EXP-EDGE"]

    def test_expiring_supplies_default_window(self, seeded, clock):
        service = StockService(seeded, clock=clock, expiration_days_ahead=0)
        service.register_supply(
            Supply("EXP-TODAY", "Lote", "unidad", 1, 0, expiration_date=clock.today())
        )
        assert [s.code for s in service.expiring_supplies()] == ["EXP-TODAY"]

    def test_expiring_supplies_negative_days_rejected(self, stock_service):
        with pytest.raises(ValidationError):
            stock_service.expiring_supplies(-1)

    def test_has_sufficient_stock(self, stock_service):
        assert stock_service.has_sufficient_stock("GAS-01", 50) is True
        assert stock_service.has_sufficient_stock("GAS-01", 51) is False
        assert stock_service.has_sufficient_stock("NOPE-1", 1) is False

    def test_has_sufficient_stock_rejects_zero(self, stock_service):
        with pytest.raises(ValidationError):
            stock_service.has_sufficient_stock("GAS-01", 0)

    def test_search_and_listing(self, stock_service):
        assert [s.code for s in stock_service.search_supplies("guantes")] == ["GUA-01"]
        assert [s.code for s in stock_service.all_supplies()] == ["BAR-01", "GAS-01", "GUA-01"]
        assert [s.name for s in stock_service.all_services()] == [
            "Guardia",
            "Internación",
            "Quirófano",
            "Consultorios",
        ]

    def test_find_supply_missing(self, stock_service):
        with pytest.raises(SupplyNotFoundError):
            stock_service.find_supply("NOPE-1")


class TestReferenceData:
    def test_register_supply_duplicate(self, stock_service):
        with pytest.raises(DuplicateSupplyError):
            stock_service.register_supply(Supply("GAS-01", "Gasas", "paquete", 1, 1))

    def test_register_service(self, stock_service):
        stock_service.register_service(ClinicalService(5, "Pediatría"))
        assert [s.id for s in stock_service.all_services()] == [1, 2, 3, 4, 5]

    def test_register_service_duplicate(self, stock_service):
        with pytest.raises(DuplicateServiceError):
            stock_service.register_service(ClinicalService(2, "Internación"))
