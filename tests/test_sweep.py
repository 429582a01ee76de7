"""
Tests for time-driven transitions: the sweep and lazy reconciliation
"""
from datetime import datetime, timedelta
from uuid import uuid4

from wellness_lending.models.base import LoanStatus, QueueStatus, ResourceStatus
from wellness_lending.models.loan import Loan
from wellness_lending.services.loan import effective_status
from wellness_lending.services.settings import PolicySettings

START = datetime(2025, 3, 3, 9, 0, 0)


class TestEffectiveStatus:
    policy = PolicySettings()

    def test_pending_is_auto_rejected_after_approval_window(self):
        loan = Loan(status=LoanStatus.PENDING, requested_at=START)

        assert effective_status(loan, START + timedelta(minutes=60), self.policy) == LoanStatus.PENDING
        assert effective_status(loan, START + timedelta(minutes=61), self.policy) == LoanStatus.REJECTED

    def test_approved_expires_after_pickup_deadline(self):
        deadline = START + timedelta(minutes=30)
        loan = Loan(status=LoanStatus.APPROVED, requested_at=START, pickup_deadline=deadline)

        assert effective_status(loan, deadline, self.policy) == LoanStatus.APPROVED
        assert effective_status(loan, deadline + timedelta(seconds=1), self.policy) == LoanStatus.EXPIRED

    def test_active_becomes_overdue_after_due_date(self):
        due = START + timedelta(days=7)
        loan = Loan(status=LoanStatus.ACTIVE, requested_at=START, due_date=due)

        assert effective_status(loan, due, self.policy) == LoanStatus.ACTIVE
        assert effective_status(loan, due + timedelta(seconds=1), self.policy) == LoanStatus.OVERDUE

    def test_terminal_status_never_changes(self):
        loan = Loan(status=LoanStatus.RETURNED, requested_at=START, due_date=START)

        assert effective_status(loan, START + timedelta(days=365), self.policy) == LoanStatus.RETURNED


def test_sweep_applies_due_transitions(services, make_resource, review_category, borrow, clock, events):
    pending = services.loans().request_loan(uuid4(), make_resource(review_category, name="Chair").id).data.loan
    approved = services.loans().request_loan(uuid4(), make_resource(name="Mat").id).data.loan
    active = borrow(uuid4(), make_resource(name="Lamp"))

    clock.advance(days=8)
    result = services.sweep().sweep()

    report = result.data
    assert (report.expired, report.rejected, report.overdue, report.failed) == (1, 1, 1, [])
    assert report.total == 3
    assert pending.status == LoanStatus.REJECTED
    assert pending.rejection_reason == "approval timed out"
    assert approved.status == LoanStatus.EXPIRED
    assert approved.rejection_reason == "pickup deadline passed"
    assert active.status == LoanStatus.OVERDUE
    assert events.types.count("loan.expired") == 1
    assert events.types.count("loan.rejected") == 1
    assert events.types.count("loan.overdue") == 1


def test_sweep_is_idempotent(services, make_resource, borrow, clock):
    borrow(uuid4(), make_resource())
    clock.advance(days=8)
    services.sweep().sweep()

    second = services.sweep().sweep().data

    assert second.total == 0


def test_sweep_and_lazy_read_agree(services, make_resource, borrow, clock):
    swept = borrow(uuid4(), make_resource(name="Mat"))
    read = borrow(uuid4(), make_resource(name="Lamp"))
    clock.advance(days=8)

    services.sweep().sweep()

    assert services.loans().get_loan(read.id).data.status == swept.status == LoanStatus.OVERDUE


def test_sweep_expires_queue_windows_and_blocks(services, make_resource, borrow, admin_id, clock):
    resource = make_resource()
    loan = borrow(uuid4(), resource)
    entry = services.loans().request_loan(uuid4(), resource.id).data.queue_entry
    services.loans().return_loan(loan.id)
    services.trust().block_student(admin_id, uuid4(), days=1)

    clock.advance(days=2)
    report = services.sweep().sweep().data

    assert report.queue_expired == 1
    assert report.unblocked == 1
    assert entry.status == QueueStatus.EXPIRED
    assert resource.status == ResourceStatus.AVAILABLE


def test_expired_pickup_hands_resource_to_queue(services, make_resource, borrow, clock):
    resource = make_resource()
    first = borrow(uuid4(), resource)
    entry = services.loans().request_loan(uuid4(), resource.id).data.queue_entry
    services.loans().return_loan(first.id)
    converted = services.queue().convert_to_loan(entry.id, entry.user_id).data
    waiter = services.loans().request_loan(uuid4(), resource.id).data.queue_entry

    clock.advance(minutes=31)
    services.sweep().sweep()

    assert converted.status == LoanStatus.EXPIRED
    assert waiter.status == QueueStatus.NOTIFIED
    assert resource.status == ResourceStatus.RESERVED


def test_run_sweep_entry_point(services, make_resource, borrow, db, monkeypatch):
    from contextlib import contextmanager

    from wellness_lending import main

    @contextmanager
    def test_session():
        yield db

    monkeypatch.setattr(main, "get_db_context", test_session)
    loan = borrow(uuid4(), make_resource())

    # the entry point runs on wall-clock time, long after the frozen start
    main.run_sweep()

    db.expire_all()
    assert db.get(Loan, loan.id).status == LoanStatus.OVERDUE
