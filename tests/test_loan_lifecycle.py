"""
Tests for the loan state machine
"""
from datetime import timedelta
from uuid import uuid4

import pytest

from wellness_lending.models.base import DecisionSource, LoanStatus, ResourceStatus
from wellness_lending.models.catalog import ResourceCategory
from wellness_lending.models.loan import LOAN_TRANSITIONS, Loan
from wellness_lending.models.student import StudentBehavioralStatus
from wellness_lending.services.base import ErrorCode
from wellness_lending.services.loan import RequestOutcomeKind, is_auto_approvable
from wellness_lending.services.settings import PolicySettings


def test_low_risk_request_is_auto_approved(services, make_resource, clock, events):
    resource = make_resource()
    student = uuid4()

    result = services.loans().request_loan(student, resource.id)

    assert result.is_success
    assert result.data.kind == RequestOutcomeKind.APPROVED
    loan = result.data.loan
    assert loan.status == LoanStatus.APPROVED
    assert loan.decision_source == DecisionSource.AUTOMATIC
    assert loan.approved_by is None
    assert loan.trust_score_at_request == 100
    assert loan.pickup_deadline == clock() + timedelta(minutes=30)
    assert resource.status == ResourceStatus.RESERVED
    assert events.types == ["loan.requested", "loan.approved"]


def test_request_needing_review_waits_for_admin(services, make_resource, review_category, admin_id):
    resource = make_resource(review_category)
    student = uuid4()

    result = services.loans().request_loan(student, resource.id)

    assert result.data.kind == RequestOutcomeKind.PENDING
    loan = result.data.loan
    assert loan.status == LoanStatus.PENDING
    assert loan.pickup_deadline is None
    assert resource.status == ResourceStatus.RESERVED

    approved = services.loans().approve_loan(admin_id, loan.id, notes="ok for one week")

    assert approved.is_success
    assert approved.data.status == LoanStatus.APPROVED
    assert approved.data.decision_source == DecisionSource.HUMAN
    assert approved.data.approved_by == admin_id
    assert approved.data.admin_notes == "ok for one week"


def test_full_round_trip(services, make_category, make_resource, clock, events):
    category = make_category(base_wellness_hours=2.0, hourly_factor=0.5, max_loan_days=3)
    resource = make_resource(category)
    student = uuid4()
    loans = services.loans()

    loan = loans.request_loan(student, resource.id).data.loan
    picked_up = loans.record_pickup(loan.id)

    assert picked_up.is_success
    assert picked_up.data.status == LoanStatus.ACTIVE
    assert picked_up.data.delivered_at == clock()
    assert picked_up.data.due_date == clock() + timedelta(days=3)
    assert resource.status == ResourceStatus.BORROWED

    clock.advance(hours=2)
    returned = loans.return_loan(loan.id)

    assert returned.is_success
    assert returned.data.status == LoanStatus.RETURNED
    assert returned.data.returned_at == clock()
    assert resource.status == ResourceStatus.AVAILABLE

    status = services.trust().get_status(student).data
    assert status.trust_score == 102
    assert status.total_loans == 1
    assert status.on_time_returns == 1

    wellness = services.wellness().get_summary(student).data
    assert wellness["balance"] == pytest.approx(3.0)

    history = loans.get_history(loan.id).data
    assert [h.sequence for h in history] == [1, 2, 3, 4]
    assert [h.from_status for h in history] == [None, LoanStatus.PENDING, LoanStatus.APPROVED, LoanStatus.ACTIVE]
    assert [h.to_status for h in history] == [
        LoanStatus.PENDING,
        LoanStatus.APPROVED,
        LoanStatus.ACTIVE,
        LoanStatus.RETURNED,
    ]
    assert events.types == ["loan.requested", "loan.approved", "loan.activated", "loan.returned"]


def test_late_return_is_penalized(services, make_resource, borrow, clock, events):
    resource = make_resource()
    student = uuid4()
    loan = borrow(student, resource)

    clock.advance(days=8)
    fetched = services.loans().get_loan(loan.id)
    assert fetched.data.status == LoanStatus.OVERDUE
    assert "loan.overdue" in events.types

    returned = services.loans().return_loan(loan.id)

    assert returned.is_success
    assert returned.data.status == LoanStatus.RETURNED
    status = services.trust().get_status(student).data
    assert status.trust_score == 95
    assert status.late_returns == 1
    assert not status.is_blocked

    wellness = services.wellness().get_summary(student).data
    assert wellness["earned"] == pytest.approx(1.0)
    assert wellness["penalties"] == pytest.approx(-1.0)
    assert wellness["balance"] == pytest.approx(0.0)


def test_reject_releases_resource_and_keeps_score(services, make_resource, review_category, admin_id):
    resource = make_resource(review_category)
    student = uuid4()
    loan = services.loans().request_loan(student, resource.id).data.loan

    rejected = services.loans().reject_loan(admin_id, loan.id, "  not this week ")

    assert rejected.is_success
    assert rejected.data.status == LoanStatus.REJECTED
    assert rejected.data.rejection_reason == "not this week"
    assert resource.status == ResourceStatus.AVAILABLE
    assert services.trust().get_status(student).data.trust_score == 100


def test_reject_requires_reason(services, make_resource, review_category, admin_id):
    resource = make_resource(review_category)
    loan = services.loans().request_loan(uuid4(), resource.id).data.loan

    result = services.loans().reject_loan(admin_id, loan.id, "   ")

    assert not result.is_success
    assert result.error.code == ErrorCode.VALIDATION_ERROR
    assert loan.status == LoanStatus.PENDING


def test_transition_outside_state_machine_is_refused(services, make_resource, review_category, admin_id):
    resource = make_resource(review_category)
    loan = services.loans().request_loan(uuid4(), resource.id).data.loan

    result = services.loans().return_loan(loan.id)

    assert not result.is_success
    assert result.error.code == ErrorCode.STATE_CONFLICT
    assert result.error.reason == "INVALID_TRANSITION"
    assert resource.status == ResourceStatus.RESERVED


def test_second_approval_is_refused(services, make_resource, review_category, admin_id):
    resource = make_resource(review_category)
    loan = services.loans().request_loan(uuid4(), resource.id).data.loan
    services.loans().approve_loan(admin_id, loan.id)

    result = services.loans().approve_loan(admin_id, loan.id)

    assert result.error.code == ErrorCode.STATE_CONFLICT


@pytest.mark.parametrize("status", list(LoanStatus))
def test_transition_table(status):
    loan = Loan(status=status)
    allowed = LOAN_TRANSITIONS.get(status, frozenset())
    for target in LoanStatus:
        assert loan.can_transition_to(target) == (target in allowed)


def test_terminal_statuses_have_no_exits():
    for status in (LoanStatus.RETURNED, LoanStatus.REJECTED, LoanStatus.EXPIRED, LoanStatus.LOST, LoanStatus.DAMAGED):
        assert status not in LOAN_TRANSITIONS


def test_pending_only_leaves_by_decision():
    assert LOAN_TRANSITIONS[LoanStatus.PENDING] == {LoanStatus.APPROVED, LoanStatus.REJECTED}
    assert not Loan(status=LoanStatus.PENDING).can_transition_to(LoanStatus.EXPIRED)


def test_pickup_with_past_due_date_is_refused(services, make_resource, clock):
    resource = make_resource()
    loan = services.loans().request_loan(uuid4(), resource.id).data.loan

    result = services.loans().record_pickup(loan.id, due_date=clock() - timedelta(hours=1))

    assert result.error.code == ErrorCode.VALIDATION_ERROR
    assert loan.status == LoanStatus.APPROVED


def test_pickup_with_explicit_due_date(services, make_resource, clock):
    resource = make_resource()
    loan = services.loans().request_loan(uuid4(), resource.id).data.loan
    due = clock() + timedelta(days=2)

    result = services.loans().record_pickup(loan.id, due_date=due)

    assert result.data.due_date == due


def test_pickup_after_deadline_expires_loan(services, make_resource, clock, events):
    resource = make_resource()
    loan = services.loans().request_loan(uuid4(), resource.id).data.loan

    clock.advance(minutes=31)
    result = services.loans().record_pickup(loan.id)

    assert not result.is_success
    assert result.error.code == ErrorCode.STATE_CONFLICT
    # The expiry is kept even though the pickup was refused
    assert loan.status == LoanStatus.EXPIRED
    assert loan.rejection_reason == "pickup deadline passed"
    assert resource.status == ResourceStatus.AVAILABLE
    assert "loan.expired" in events.types


def test_expire_approval(services, make_resource, review_category, clock, events):
    resource = make_resource(review_category)
    loan = services.loans().request_loan(uuid4(), resource.id).data.loan

    early = services.loans().expire_approval(loan.id)
    assert early.error.code == ErrorCode.STATE_CONFLICT

    clock.advance(minutes=61)
    result = services.loans().expire_approval(loan.id)

    assert result.is_success
    assert result.data.status == LoanStatus.REJECTED
    assert result.data.rejection_reason == "approval timed out"
    assert resource.status == ResourceStatus.AVAILABLE
    assert [row.to_status for row in services.loans().get_history(loan.id).data][-1] == LoanStatus.REJECTED
    assert events.of_type("loan.rejected")[0].data["reason"] == "approval timed out"
    assert "loan.expired" not in events.types


def test_mark_overdue(services, make_resource, borrow, clock):
    resource = make_resource()
    loan = borrow(uuid4(), resource)

    assert services.loans().mark_overdue(loan.id).error.code == ErrorCode.STATE_CONFLICT

    clock.advance(days=7, seconds=1)
    result = services.loans().mark_overdue(loan.id)

    assert result.data.status == LoanStatus.OVERDUE
    assert resource.status == ResourceStatus.BORROWED


def test_live_loan_limit(services, make_resource):
    services.settings().update_setting("max_active_loans", 1)
    student = uuid4()
    first = make_resource(name="Mat")
    second = make_resource(name="Lamp")

    assert services.loans().request_loan(student, first.id).is_success
    result = services.loans().request_loan(student, second.id)

    assert result.error.code == ErrorCode.POLICY_VIOLATION
    assert result.error.reason == "LOAN_LIMIT_EXCEEDED"
    assert second.status == ResourceStatus.AVAILABLE


def test_category_limit(services, make_category, make_resource):
    category = make_category(max_per_student=1)
    student = uuid4()
    first = make_resource(category, name="Mat 1")
    second = make_resource(category, name="Mat 2")

    services.loans().request_loan(student, first.id)
    result = services.loans().request_loan(student, second.id)

    assert result.error.reason == "LOAN_LIMIT_EXCEEDED"
    assert services.loans().request_loan(uuid4(), second.id).is_success


def test_blocked_student_cannot_request(services, make_resource, admin_id, clock, events):
    resource = make_resource()
    student = uuid4()
    services.trust().block_student(admin_id, student, days=3, reason="missed pickups")

    refused = services.loans().request_loan(student, resource.id)

    assert refused.error.code == ErrorCode.POLICY_VIOLATION
    assert refused.error.reason == "STUDENT_BLOCKED"
    assert "loan.requested" not in events.types
    assert resource.status == ResourceStatus.AVAILABLE

    clock.advance(days=3)
    allowed = services.loans().request_loan(student, resource.id)

    assert allowed.is_success
    assert not services.trust().get_status(student).data.is_blocked
    assert "student.unblocked" in events.types


def test_unavailable_resource_without_queueing(services, make_resource, borrow):
    services.settings().update_setting("allow_queue_for_unavailable", False)
    resource = make_resource()
    borrow(uuid4(), resource)

    result = services.loans().request_loan(uuid4(), resource.id)

    assert result.error.code == ErrorCode.POLICY_VIOLATION
    assert result.error.reason == "RESOURCE_UNAVAILABLE"


def test_uncategorized_resource_goes_to_review(services, make_resource):
    resource = make_resource(uncategorized=True)

    result = services.loans().request_loan(uuid4(), resource.id)

    assert result.data.kind == RequestOutcomeKind.PENDING


def test_unknown_loan(services):
    result = services.loans().get_loan(uuid4())

    assert result.error.code == ErrorCode.NOT_FOUND
    assert result.error.reason == "LOAN_NOT_FOUND"


def test_list_loans_for_user(services, make_resource, borrow):
    student = uuid4()
    borrow(student, make_resource(name="Mat"))
    services.loans().request_loan(student, make_resource(name="Lamp").id)

    everything = services.loans().list_loans_for_user(student).data
    active = services.loans().list_loans_for_user(student, LoanStatus.ACTIVE).data

    assert len(everything) == 2
    assert [loan.status for loan in active] == [LoanStatus.ACTIVE]


def test_list_by_status_applies_due_transitions(services, make_resource, review_category, borrow, clock, events):
    pending = services.loans().request_loan(uuid4(), make_resource(review_category, name="Chair").id).data.loan
    active = borrow(uuid4(), make_resource(name="Lamp"))

    clock.advance(days=8)

    assert services.loans().list_by_status(LoanStatus.PENDING).data == []
    assert services.loans().list_by_status(LoanStatus.ACTIVE).data == []
    assert [loan.id for loan in services.loans().list_by_status(LoanStatus.REJECTED).data] == [pending.id]
    assert [loan.id for loan in services.loans().list_by_status(LoanStatus.OVERDUE).data] == [active.id]
    assert events.types.count("loan.overdue") == 1


def test_presential_loan_starts_active(services, make_category, make_resource, admin_id, clock, events):
    resource = make_resource(make_category(max_loan_days=3))
    student = uuid4()

    result = services.loans().create_presential_loan(admin_id, student, resource.id, notes="walk-in")

    assert result.is_success
    loan = result.data
    assert loan.status == LoanStatus.ACTIVE
    assert loan.decision_source == DecisionSource.HUMAN
    assert loan.approved_by == admin_id
    assert loan.approved_at == loan.delivered_at == clock()
    assert loan.due_date == clock() + timedelta(days=3)
    assert loan.pickup_deadline is None
    assert loan.admin_notes == "walk-in"
    assert resource.status == ResourceStatus.BORROWED
    history = services.loans().get_history(loan.id).data
    assert [(row.from_status, row.to_status) for row in history] == [(None, LoanStatus.ACTIVE)]
    assert services.trust().get_status(student).data.total_loans == 1
    assert events.types == ["loan.activated"]

    returned = services.loans().return_loan(loan.id, admin_id)

    assert returned.data.status == LoanStatus.RETURNED
    assert resource.status == ResourceStatus.AVAILABLE


def test_presential_loan_with_explicit_due_date(services, make_resource, admin_id, clock):
    due = clock() + timedelta(days=1)

    result = services.loans().create_presential_loan(admin_id, uuid4(), make_resource().id, due_date=due)

    assert result.data.due_date == due
    assert result.data.status == LoanStatus.ACTIVE


def test_presential_loan_refusals(services, make_resource, borrow, admin_id, clock, events):
    resource = make_resource()

    past = services.loans().create_presential_loan(admin_id, uuid4(), resource.id, due_date=clock() - timedelta(hours=1))
    assert past.error.code == ErrorCode.VALIDATION_ERROR
    assert resource.status == ResourceStatus.AVAILABLE

    blocked = uuid4()
    services.trust().block_student(admin_id, blocked, days=3, reason="missed pickups")
    refused = services.loans().create_presential_loan(admin_id, blocked, resource.id)
    assert refused.error.reason == "STUDENT_BLOCKED"
    assert resource.status == ResourceStatus.AVAILABLE

    borrow(uuid4(), resource)
    taken = services.loans().create_presential_loan(admin_id, uuid4(), resource.id)
    assert taken.error.reason == "RESOURCE_UNAVAILABLE"
    assert events.types.count("loan.activated") == 1


def test_presential_loan_counts_toward_limit(services, make_resource, admin_id):
    services.settings().update_setting("max_active_loans", 1)
    student = uuid4()
    services.loans().create_presential_loan(admin_id, student, make_resource(name="Mat").id)

    result = services.loans().create_presential_loan(admin_id, student, make_resource(name="Lamp").id)

    assert result.error.reason == "LOAN_LIMIT_EXCEEDED"


class TestAutoApproval:
    """Every condition must hold for an automatic approval."""

    @staticmethod
    def _inputs(**changes):
        policy = PolicySettings(**changes.pop("policy", {}))
        category = ResourceCategory(
            name="Mats",
            is_low_risk=changes.pop("is_low_risk", True),
            requires_approval=changes.pop("requires_approval", False),
        )
        status = StudentBehavioralStatus(
            user_id=uuid4(),
            trust_score=changes.pop("trust_score", 100),
            is_blocked=changes.pop("is_blocked", False),
        )
        return policy, category, status

    def test_all_conditions_hold(self):
        assert is_auto_approvable(*self._inputs())

    def test_threshold_is_inclusive(self):
        assert is_auto_approvable(*self._inputs(trust_score=80))

    @pytest.mark.parametrize(
        "changes",
        [
            {"policy": {"auto_approve_low_risk": False}},
            {"is_low_risk": False},
            {"requires_approval": True},
            {"trust_score": 79},
            {"is_blocked": True},
        ],
    )
    def test_any_failing_condition(self, changes):
        assert not is_auto_approvable(*self._inputs(**changes))

    def test_no_category(self):
        policy, _, status = self._inputs()
        assert not is_auto_approvable(policy, None, status)
