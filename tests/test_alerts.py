"""
Tests for alerts raised from lending events
"""
from uuid import uuid4

from wellness_lending.models.base import AlertTargetRole, LoanStatus
from wellness_lending.services.base import ErrorCode


def test_request_alerts_student_and_admins(services, make_resource, review_category):
    resource = make_resource(review_category)
    student = uuid4()

    loan = services.loans().request_loan(student, resource.id).data.loan

    [admin_alert] = services.alerts().list_for_admins().data
    assert admin_alert.type == "loan.requested"
    assert admin_alert.target_role == AlertTargetRole.ADMIN
    assert admin_alert.entity_id == loan.id

    [student_alert] = services.alerts().list_for_user(student).data
    assert student_alert.type == "loan.requested"
    assert student_alert.target_user_id == student


def test_student_only_events(services, make_resource, borrow):
    student = uuid4()
    borrow(student, make_resource())

    types = {alert.type for alert in services.alerts().list_for_user(student).data}
    admin_types = {alert.type for alert in services.alerts().list_for_admins().data}

    assert types == {"loan.requested", "loan.approved", "loan.activated"}
    assert admin_types == {"loan.requested"}


def test_mark_read(services, make_resource, review_category):
    services.loans().request_loan(uuid4(), make_resource(review_category).id)
    [alert] = services.alerts().list_for_admins(unread_only=True).data

    result = services.alerts().mark_read(alert.id)

    assert result.data.is_read
    assert services.alerts().list_for_admins(unread_only=True).data == []
    assert len(services.alerts().list_for_admins().data) == 1


def test_mark_read_unknown_alert(services):
    assert services.alerts().mark_read(uuid4()).error.code == ErrorCode.NOT_FOUND


def test_failing_subscriber_does_not_undo_operation(services, bus, make_resource, db):
    def broken_handler(event):
        raise RuntimeError("mail server down")

    bus.subscribe("loan.requested", broken_handler)
    resource = make_resource()

    result = services.loans().request_loan(uuid4(), resource.id)

    assert result.is_success
    db.expire_all()
    assert services.loans().get_loan(result.data.loan.id).data.status == LoanStatus.APPROVED
    assert len(services.alerts().list_for_admins().data) == 1


def test_refused_operation_publishes_nothing(services, make_resource, admin_id, events):
    student = uuid4()
    services.trust().block_student(admin_id, student)
    before = list(events.types)

    services.loans().request_loan(student, make_resource().id)

    assert events.types == before
    assert {alert.type for alert in services.alerts().list_for_user(student).data} == {"student.blocked"}
