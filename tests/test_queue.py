"""
Tests for the resource waiting list
"""
from datetime import timedelta
from uuid import uuid4

import pytest

from wellness_lending.models.base import LoanStatus, QueueStatus, ResourceStatus
from wellness_lending.services.base import ErrorCode
from wellness_lending.services.loan import RequestOutcomeKind


@pytest.fixture
def held_resource(make_resource, borrow):
    """A resource currently lent to someone, with the borrower's loan."""
    resource = make_resource(name="Light therapy lamp")
    loan = borrow(uuid4(), resource)
    return resource, loan


def _queue(services, resource, student):
    result = services.loans().request_loan(student, resource.id)
    assert result.is_success, result.message
    assert result.data.kind == RequestOutcomeKind.QUEUED
    return result.data.queue_entry


def _waiting_positions(services, resource):
    entries = services.queue().list_queue(resource.id).data
    return [entry.position for entry in entries if entry.status == QueueStatus.WAITING]


def test_request_for_unavailable_resource_queues(services, held_resource, events):
    resource, _ = held_resource

    first = _queue(services, resource, uuid4())
    second = _queue(services, resource, uuid4())

    assert (first.position, second.position) == (1, 2)
    assert first.status == QueueStatus.WAITING
    assert events.types.count("queue.enqueued") == 2


def test_duplicate_entry_is_refused(services, held_resource):
    resource, _ = held_resource
    student = uuid4()
    _queue(services, resource, student)

    result = services.loans().request_loan(student, resource.id)

    assert result.error.code == ErrorCode.STATE_CONFLICT
    assert result.error.reason == "DUPLICATE_ENTRY"


def test_borrower_cannot_queue_for_own_resource(services, make_resource, borrow):
    resource = make_resource()
    student = uuid4()
    borrow(student, resource)

    result = services.queue().enqueue(student, resource.id)

    assert result.error.code == ErrorCode.POLICY_VIOLATION


def test_enqueue_on_available_resource_is_refused(services, make_resource):
    resource = make_resource()

    result = services.queue().enqueue(uuid4(), resource.id)

    assert result.error.code == ErrorCode.STATE_CONFLICT


def test_queue_full(services, held_resource):
    services.settings().update_setting("max_queue_size", 1)
    resource, _ = held_resource
    _queue(services, resource, uuid4())

    result = services.queue().enqueue(uuid4(), resource.id)

    assert result.error.code == ErrorCode.POLICY_VIOLATION
    assert result.error.reason == "QUEUE_FULL"


def test_return_notifies_first_in_line(services, held_resource, clock, events):
    resource, loan = held_resource
    first = _queue(services, resource, uuid4())
    second = _queue(services, resource, uuid4())

    services.loans().return_loan(loan.id)

    assert first.status == QueueStatus.NOTIFIED
    assert first.position == 0
    assert first.notified_at == clock()
    assert first.expires_at == clock() + timedelta(minutes=60)
    assert second.position == 1
    assert resource.status == ResourceStatus.RESERVED

    notified = events.of_type("queue.slot_available")
    assert [event.user_id for event in notified] == [str(first.user_id)]

    listed = services.queue().list_queue(resource.id).data
    assert [entry.id for entry in listed] == [first.id, second.id]


def test_notified_student_converts_entry(services, held_resource):
    resource, loan = held_resource
    entry = _queue(services, resource, uuid4())
    services.loans().return_loan(loan.id)

    result = services.queue().convert_to_loan(entry.id, entry.user_id)

    assert result.is_success
    new_loan = result.data
    assert new_loan.status == LoanStatus.APPROVED
    assert new_loan.queue_entry_id == entry.id
    assert entry.status == QueueStatus.CONVERTED
    assert entry.converted_loan_id == new_loan.id
    assert resource.status == ResourceStatus.RESERVED


def test_request_from_notified_student_converts_entry(services, held_resource):
    resource, loan = held_resource
    entry = _queue(services, resource, uuid4())
    services.loans().return_loan(loan.id)

    result = services.loans().request_loan(entry.user_id, resource.id)

    assert result.data.kind == RequestOutcomeKind.APPROVED
    assert result.data.loan.queue_entry_id == entry.id
    assert entry.status == QueueStatus.CONVERTED


def test_other_student_cannot_convert_entry(services, held_resource):
    resource, loan = held_resource
    entry = _queue(services, resource, uuid4())
    services.loans().return_loan(loan.id)

    result = services.queue().convert_to_loan(entry.id, uuid4())

    assert result.error.code == ErrorCode.POLICY_VIOLATION
    assert entry.status == QueueStatus.NOTIFIED


def test_waiting_entry_cannot_convert(services, held_resource):
    resource, _ = held_resource
    entry = _queue(services, resource, uuid4())

    result = services.queue().convert_to_loan(entry.id, entry.user_id)

    assert result.error.code == ErrorCode.STATE_CONFLICT


def test_lapsed_notification_passes_to_next(services, held_resource, clock):
    resource, loan = held_resource
    first = _queue(services, resource, uuid4())
    second = _queue(services, resource, uuid4())
    services.loans().return_loan(loan.id)

    clock.advance(minutes=61)
    lapsed = services.queue().expire_notifications()

    assert lapsed.data == 1
    assert first.status == QueueStatus.EXPIRED
    assert second.status == QueueStatus.NOTIFIED
    assert resource.status == ResourceStatus.RESERVED

    clock.advance(minutes=61)
    services.queue().expire_notifications()

    assert second.status == QueueStatus.EXPIRED
    assert resource.status == ResourceStatus.AVAILABLE


def test_lapsed_window_cannot_convert(services, held_resource, clock):
    resource, loan = held_resource
    entry = _queue(services, resource, uuid4())
    services.loans().return_loan(loan.id)

    clock.advance(minutes=61)
    result = services.queue().convert_to_loan(entry.id, entry.user_id)

    assert not result.is_success
    assert entry.status == QueueStatus.EXPIRED
    assert resource.status == ResourceStatus.AVAILABLE


def test_cancel_keeps_positions_contiguous(services, held_resource):
    resource, _ = held_resource
    students = [uuid4() for _ in range(4)]
    entries = [_queue(services, resource, student) for student in students]

    result = services.queue().cancel(entries[1].id, students[1])

    assert result.is_success
    assert entries[1].status == QueueStatus.CANCELLED
    assert entries[1].position == 0
    assert _waiting_positions(services, resource) == [1, 2, 3]
    assert [entries[0].position, entries[2].position, entries[3].position] == [1, 2, 3]


def test_cancel_by_notified_student_passes_resource_on(services, held_resource):
    resource, loan = held_resource
    first = _queue(services, resource, uuid4())
    second = _queue(services, resource, uuid4())
    services.loans().return_loan(loan.id)

    services.queue().cancel(first.id, first.user_id)

    assert first.status == QueueStatus.CANCELLED
    assert second.status == QueueStatus.NOTIFIED
    assert resource.status == ResourceStatus.RESERVED


def test_cancel_other_students_entry(services, held_resource):
    resource, _ = held_resource
    entry = _queue(services, resource, uuid4())

    result = services.queue().cancel(entry.id, uuid4())

    assert result.error.code == ErrorCode.POLICY_VIOLATION
    assert entry.status == QueueStatus.WAITING


def test_list_for_user(services, held_resource):
    resource, _ = held_resource
    student = uuid4()
    entry = _queue(services, resource, student)

    entries = services.queue().list_for_user(student).data

    assert [e.id for e in entries] == [entry.id]
