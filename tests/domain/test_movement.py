"""Tests for MovementDraft validation and the committed Movement."""

from dataclasses import FrozenInstanceError
from datetime import datetime, timezone

import pytest

from clinic_stock.domain.movement import Movement, MovementDraft, MovementKind
from clinic_stock.exceptions import ValidationError

T0 = datetime(2024, 1, 5, 9, 30, tzinfo=timezone.utc)


class TestMovementDraftValidation:
    def test_valid_ingress(self):
        MovementDraft(MovementKind.INGRESS, 5, "GAS-01", 1000).validate()

    def test_valid_egress(self):
        MovementDraft(MovementKind.EGRESS, 5, "GAS-01", 1000, service_id=1).validate()

    def test_ingress_with_service_rejected(self):
        draft = MovementDraft(MovementKind.INGRESS, 5, "GAS-01", 1000, service_id=1)
        with pytest.raises(ValidationError) as exc_info:
            draft.validate()
        assert exc_info.value.field == "service_id"

    def test_egress_without_service_rejected(self):
        draft = MovementDraft(MovementKind.EGRESS, 5, "GAS-01", 1000)
        with pytest.raises(ValidationError) as exc_info:
            draft.validate()
        assert exc_info.value.field == "service_id"

    @pytest.mark.parametrize("quantity", [0, -1, True])
    def test_non_positive_quantity_rejected(self, quantity):
        with pytest.raises(ValidationError):
            MovementDraft(MovementKind.INGRESS, quantity, "GAS-01", 1000).validate()

    def test_missing_supply_rejected(self):
        with pytest.raises(ValidationError):
            MovementDraft(MovementKind.INGRESS, 1, None, 1000).validate()

    def test_missing_actor_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            MovementDraft(MovementKind.INGRESS, 1, "GAS-01", None).validate()
        assert exc_info.value.field == "actor_legajo"

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValidationError):
            MovementDraft("transfer", 1, "GAS-01", 1000).validate()


class TestMovementCommit:
    def test_commit_assigns_id_and_timestamp(self):
        movement = MovementDraft(MovementKind.INGRESS, 3, " gas-01 ", 1000).commit(7, T0)
        assert movement.id == 7
        assert movement.occurred_at == T0
        assert movement.supply_code == "GAS-01"

    def test_commit_keeps_explicit_timestamp(self):
        explicit = datetime(2023, 12, 31, 23, 0, tzinfo=timezone.utc)
        draft = MovementDraft(MovementKind.INGRESS, 3, "GAS-01", 1000, occurred_at=explicit)
        assert draft.commit(1, T0).occurred_at == explicit

    def test_movement_is_frozen(self):
        movement = MovementDraft(MovementKind.INGRESS, 3, "GAS-01", 1000).commit(1, T0)
        with pytest.raises(FrozenInstanceError):
            movement.id = 2

    def test_signed_quantity(self):
        ingress = Movement(1, MovementKind.INGRESS, T0, 4, "GAS-01", 1000)
        egress = Movement(2, MovementKind.EGRESS, T0, 3, "GAS-01", 1000, service_id=1)
        assert ingress.signed_quantity == 4
        assert egress.signed_quantity == -3

    def test_sort_key_breaks_timestamp_ties_by_id(self):
        a = Movement(1, MovementKind.INGRESS, T0, 1, "GAS-01", 1000)
        b = Movement(2, MovementKind.INGRESS, T0, 1, "GAS-01", 1000)
        assert sorted([a, b], key=Movement.sort_key, reverse=True) == [b, a]
