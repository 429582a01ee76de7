"""
Tests for damage, loss and theft adjudication
"""
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from wellness_lending.core.exceptions import ValidationError
from wellness_lending.models.base import (
    DamageRecordStatus,
    DamageSeverity,
    DamageType,
    LoanStatus,
    ResourceStatus,
)
from wellness_lending.models.catalog import Resource
from wellness_lending.models.loan import Loan
from wellness_lending.repositories.base import BaseRepository
from wellness_lending.services.base import ErrorCode
from wellness_lending.services.damage import calculate_fine, loan_outcome


class TestCalculateFine:
    @pytest.mark.parametrize(
        "severity, expected",
        [
            (DamageSeverity.MINOR, Decimal("10.00")),
            (DamageSeverity.MODERATE, Decimal("30.00")),
            (DamageSeverity.SEVERE, Decimal("60.00")),
            (DamageSeverity.TOTAL_LOSS, Decimal("100.00")),
        ],
    )
    def test_damage_scales_with_severity(self, severity, expected):
        assert calculate_fine(DamageType.DAMAGE, severity, Decimal("100.00")) == expected

    @pytest.mark.parametrize("damage_type", [DamageType.LOSS, DamageType.THEFT])
    def test_loss_and_theft_charge_full_cost(self, damage_type):
        assert calculate_fine(damage_type, DamageSeverity.MINOR, "80") == Decimal("80.00")

    def test_rounds_to_cents(self):
        assert calculate_fine(DamageType.DAMAGE, DamageSeverity.MINOR, Decimal("33.33")) == Decimal("3.33")

    def test_same_inputs_same_fine(self):
        first = calculate_fine(DamageType.DAMAGE, DamageSeverity.SEVERE, 45.5)
        second = calculate_fine(DamageType.DAMAGE, DamageSeverity.SEVERE, 45.5)
        assert first == second == Decimal("27.30")

    def test_negative_cost(self):
        with pytest.raises(ValidationError):
            calculate_fine(DamageType.DAMAGE, DamageSeverity.MINOR, -1)


def test_loan_outcome():
    assert loan_outcome(DamageType.DAMAGE, DamageSeverity.SEVERE) == LoanStatus.DAMAGED
    assert loan_outcome(DamageType.DAMAGE, DamageSeverity.TOTAL_LOSS) == LoanStatus.LOST
    assert loan_outcome(DamageType.LOSS, DamageSeverity.MINOR) == LoanStatus.LOST
    assert loan_outcome(DamageType.THEFT, DamageSeverity.MODERATE) == LoanStatus.DAMAGED


def test_quote_fine_uses_category_cost(services, make_resource):
    resource = make_resource()

    result = services.damage().quote_fine(DamageType.DAMAGE, DamageSeverity.MODERATE, resource.id)

    assert result.data == Decimal("30.00")


def test_quote_fine_falls_back_to_default_cost(services, make_category, make_resource):
    resource = make_resource(make_category(replacement_cost=None))

    result = services.damage().quote_fine(DamageType.DAMAGE, DamageSeverity.MODERATE, resource.id)

    assert result.data == Decimal("15.00")


def test_quote_fine_unknown_resource(services):
    result = services.damage().quote_fine(DamageType.DAMAGE, DamageSeverity.MINOR, uuid4())

    assert result.error.code == ErrorCode.NOT_FOUND


def test_damage_report(services, make_resource, borrow, admin_id, events):
    resource = make_resource()
    student = uuid4()
    loan = borrow(student, resource)

    result = services.loans().report_damage(
        admin_id,
        loan.id,
        DamageType.DAMAGE,
        DamageSeverity.MODERATE,
        "Torn along one edge",
        images=["img/1.jpg"],
        estimated_cost=Decimal("25"),
    )

    assert result.is_success
    record = result.data
    assert record.fine_amount == Decimal("30.00")
    assert record.estimated_cost == Decimal("25.00")
    assert record.status == DamageRecordStatus.REVIEWED
    assert record.damage_images == ["img/1.jpg"]
    assert loan.status == LoanStatus.DAMAGED
    assert loan.damage_notes == "[damage/moderate] Torn along one edge"
    assert resource.status == ResourceStatus.MAINTENANCE

    status = services.trust().get_status(student).data
    assert status.trust_score == 75
    assert status.damages == 1
    assert not status.is_blocked

    assert services.wellness().get_summary(student).data["penalties"] == pytest.approx(-5.0)
    [event] = events.of_type("damage.reported")
    assert event.severity == "warning"
    assert event.data["fine_amount"] == "30.00"


def test_loss_report_blocks_student(services, make_resource, borrow, admin_id, clock):
    resource = make_resource()
    student = uuid4()
    loan = borrow(student, resource)

    result = services.loans().report_damage(
        admin_id, loan.id, DamageType.LOSS, DamageSeverity.MINOR, "Left on the bus"
    )

    assert result.data.fine_amount == Decimal("100.00")
    assert loan.status == LoanStatus.LOST
    assert resource.status == ResourceStatus.RETIRED

    status = services.trust().get_status(student).data
    assert status.trust_score == 50
    assert status.losses == 1
    assert status.is_blocked
    assert status.blocked_until == clock() + timedelta(days=7)
    assert services.wellness().get_summary(student).data["penalties"] == pytest.approx(-10.0)


def test_loss_without_auto_block(services, make_resource, borrow, admin_id):
    services.settings().update_setting("auto_block_on_loss", False)
    resource = make_resource()
    student = uuid4()
    loan = borrow(student, resource)

    services.loans().report_damage(admin_id, loan.id, DamageType.THEFT, DamageSeverity.SEVERE, "Stolen from locker")

    status = services.trust().get_status(student).data
    assert not status.is_blocked
    assert loan.status == LoanStatus.DAMAGED


def test_total_loss_damage_closes_as_lost_but_scores_as_damage(services, make_resource, borrow, admin_id):
    resource = make_resource()
    student = uuid4()
    loan = borrow(student, resource)

    result = services.loans().report_damage(
        admin_id, loan.id, DamageType.DAMAGE, DamageSeverity.TOTAL_LOSS, "Crushed"
    )

    assert result.data.fine_amount == Decimal("100.00")
    assert loan.status == LoanStatus.LOST
    assert resource.status == ResourceStatus.RETIRED
    status = services.trust().get_status(student).data
    assert status.trust_score == 50
    assert not status.is_blocked
    # Lost loan, damage penalty
    assert (status.damages, status.losses) == (1, 0)
    assert services.wellness().get_summary(student).data["penalties"] == pytest.approx(-5.0)


def test_overdue_loan_can_be_reported(services, make_resource, borrow, admin_id, clock):
    resource = make_resource()
    loan = borrow(uuid4(), resource)
    clock.advance(days=10)

    result = services.loans().report_damage(admin_id, loan.id, DamageType.DAMAGE, DamageSeverity.MINOR, "Scuffed")

    assert result.is_success
    history = services.loans().get_history(loan.id).data
    assert [h.to_status for h in history][-2:] == [LoanStatus.OVERDUE, LoanStatus.DAMAGED]


def test_second_report_is_refused(services, make_resource, borrow, admin_id):
    resource = make_resource()
    loan = borrow(uuid4(), resource)
    services.loans().report_damage(admin_id, loan.id, DamageType.DAMAGE, DamageSeverity.MINOR, "Scuffed")

    result = services.loans().report_damage(admin_id, loan.id, DamageType.LOSS, DamageSeverity.MINOR, "Now lost")

    assert result.error.code == ErrorCode.STATE_CONFLICT
    assert result.error.reason == "INVALID_TRANSITION"
    assert services.damage().list_for_user(loan.user_id).data[0].damage_type == DamageType.DAMAGE


def test_report_on_pending_loan_is_refused(services, make_resource, review_category, admin_id):
    resource = make_resource(review_category)
    loan = services.loans().request_loan(uuid4(), resource.id).data.loan

    result = services.loans().report_damage(admin_id, loan.id, DamageType.DAMAGE, DamageSeverity.MINOR, "Scuffed")

    assert result.error.code == ErrorCode.STATE_CONFLICT
    assert services.damage().get_for_loan(loan.id).error.code == ErrorCode.NOT_FOUND


@pytest.mark.parametrize(
    "description, images, estimated_cost",
    [
        ("  ", None, None),
        ("Scuffed", [f"img/{i}.jpg" for i in range(6)], None),
        ("Scuffed", None, Decimal("-1")),
    ],
)
def test_invalid_report(services, make_resource, borrow, admin_id, description, images, estimated_cost):
    resource = make_resource()
    loan = borrow(uuid4(), resource)

    result = services.loans().report_damage(
        admin_id, loan.id, DamageType.DAMAGE, DamageSeverity.MINOR, description, images, estimated_cost
    )

    assert result.error.code == ErrorCode.VALIDATION_ERROR
    assert loan.status == LoanStatus.ACTIVE
    assert resource.status == ResourceStatus.BORROWED


def test_record_incident_directly(services, make_resource, borrow, admin_id):
    resource = make_resource()
    loan = borrow(uuid4(), resource)

    result = services.damage().record_incident(
        admin_id, loan.id, DamageType.DAMAGE, DamageSeverity.SEVERE, "Cracked frame"
    )

    assert result.data.fine_amount == Decimal("60.00")
    assert services.damage().get_for_loan(loan.id).data.id == result.data.id


def test_record_status_transitions(services, make_resource, borrow, admin_id):
    resource = make_resource()
    loan = borrow(uuid4(), resource)
    record = services.loans().report_damage(
        admin_id, loan.id, DamageType.DAMAGE, DamageSeverity.MINOR, "Scuffed"
    ).data

    resolved = services.damage().update_record_status(admin_id, record.id, DamageRecordStatus.RESOLVED)
    assert resolved.data.status == DamageRecordStatus.RESOLVED

    waived = services.damage().update_record_status(admin_id, record.id, DamageRecordStatus.WAIVED)
    assert waived.error.code == ErrorCode.STATE_CONFLICT
    assert record.status == DamageRecordStatus.RESOLVED


def _record_row_locks(monkeypatch):
    locked = []
    original = BaseRepository.get_for_update

    def recording_get_for_update(self, entity_id):
        if self.model in (Resource, Loan):
            locked.append(self.model.__name__)
        return original(self, entity_id)

    monkeypatch.setattr(BaseRepository, "get_for_update", recording_get_for_update)
    return locked


def test_report_locks_resource_before_loan(services, make_resource, borrow, admin_id, monkeypatch):
    reported = borrow(uuid4(), make_resource(name="Mat"))
    returned = borrow(uuid4(), make_resource(name="Lamp"))
    locked = _record_row_locks(monkeypatch)

    services.loans().report_damage(admin_id, reported.id, DamageType.DAMAGE, DamageSeverity.MINOR, "Scuffed")
    report_order = list(locked)
    locked.clear()
    services.loans().return_loan(returned.id)

    assert report_order[:2] == ["Resource", "Loan"]
    assert locked[:2] == report_order[:2]
