"""
Tests for conflict detection and retry
"""
from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from wellness_lending.core.events.base_event import DomainEvent, LoanEvents
from wellness_lending.core.exceptions import DatabaseError, OptimisticLockError
from wellness_lending.models.base import LoanStatus, ResourceStatus
from wellness_lending.models.loan import Loan
from wellness_lending.repositories.base.base_repository import translate_db_error
from wellness_lending.repositories.catalog import ResourceRepository
from wellness_lending.repositories.loan import LoanRepository
from wellness_lending.services.base import ErrorCode
from wellness_lending.services.base.base_service import MAX_ATTEMPTS


def _conflicting_work(loans, fail_times):
    """Work that loses the race ``fail_times`` times, emitting an event on each attempt."""
    attempts = []

    def work():
        attempts.append(len(attempts) + 1)
        loans._emit(
            DomainEvent(
                LoanEvents.LOAN_REQUESTED,
                entity_type="loan",
                entity_id=uuid4(),
                title="attempt",
                message="attempt",
                data={"attempt": attempts[-1]},
            )
        )
        if len(attempts) <= fail_times:
            raise OptimisticLockError("Resource was modified concurrently")
        return "done"

    return work, attempts


class TestRetry:
    def test_single_conflict_is_retried(self, services, events):
        loans = services.loans()
        work, attempts = _conflicting_work(loans, fail_times=1)

        result = loans._execute("claim resource", work)

        assert result.is_success
        assert result.data == "done"
        assert attempts == [1, 2]
        # Events from the failed attempt were rolled back with it
        assert [event.data["attempt"] for event in events.events] == [2]

    def test_repeated_conflict_is_a_state_conflict(self, services, events):
        loans = services.loans()
        work, attempts = _conflicting_work(loans, fail_times=MAX_ATTEMPTS)

        result = loans._execute("claim resource", work)

        assert not result.is_success
        assert result.error.code == ErrorCode.STATE_CONFLICT
        assert result.error.reason == "CONCURRENT_MODIFICATION"
        assert len(attempts) == MAX_ATTEMPTS
        assert events.events == []


class TestCompareAndSet:
    def test_status_mismatch_raises(self, db, make_resource):
        resource = make_resource()

        with pytest.raises(OptimisticLockError) as exc_info:
            ResourceRepository(db).compare_and_set_status(resource, {ResourceStatus.RESERVED}, ResourceStatus.BORROWED)

        assert exc_info.value.details["status"] == "available"
        assert resource.status == ResourceStatus.AVAILABLE

    def test_matching_status_moves_resource(self, db, make_resource):
        resource = make_resource()

        ResourceRepository(db).compare_and_set_status(resource, {ResourceStatus.AVAILABLE}, ResourceStatus.RESERVED)

        assert resource.status == ResourceStatus.RESERVED

    def test_pickup_of_resource_changed_underneath_is_refused(self, db, services, make_resource, events):
        resource = make_resource()
        loan = services.loans().request_loan(uuid4(), resource.id).data.loan
        resource.status = ResourceStatus.MAINTENANCE
        db.commit()

        result = services.loans().record_pickup(loan.id)

        assert result.error.code == ErrorCode.STATE_CONFLICT
        assert result.error.reason == "CONCURRENT_MODIFICATION"
        assert loan.status == LoanStatus.APPROVED
        assert loan.delivered_at is None
        assert "loan.activated" not in events.types


class TestDatabaseErrorTranslation:
    def _loan(self, resource, clock):
        return Loan(
            resource_id=resource.id,
            user_id=uuid4(),
            status=LoanStatus.PENDING,
            requested_at=clock(),
            trust_score_at_request=100,
        )

    def test_second_live_loan_for_resource_is_a_conflict(self, db, make_resource, clock):
        resource = make_resource()
        repository = LoanRepository(db)
        repository.add(self._loan(resource, clock))

        with pytest.raises(OptimisticLockError) as exc_info:
            repository.add(self._loan(resource, clock))

        assert exc_info.value.details["entity"] == "Loan"
        assert "constraint" in exc_info.value.details
        assert isinstance(exc_info.value.__cause__, IntegrityError)
        db.rollback()

    def test_stale_row_is_a_conflict(self):
        error = translate_db_error(StaleDataError("version mismatch"), "Resource")

        assert isinstance(error, OptimisticLockError)
        assert error.details == {"entity": "Resource"}

    def test_other_database_failures(self):
        error = translate_db_error(OperationalError("SELECT 1", {}, Exception("disk full")), "Loan")

        assert isinstance(error, DatabaseError)
        assert not isinstance(error, OptimisticLockError)

    def test_non_database_errors_pass_through(self):
        original = ValueError("boom")

        assert translate_db_error(original) is original


class TestExpirePickup:
    def test_before_deadline_is_refused(self, services, make_resource, clock):
        resource = make_resource()
        loan = services.loans().request_loan(uuid4(), resource.id).data.loan

        clock.advance(minutes=30)
        result = services.loans().expire_pickup(loan.id)

        assert result.error.code == ErrorCode.STATE_CONFLICT
        assert loan.status == LoanStatus.APPROVED
        assert resource.status == ResourceStatus.RESERVED

    def test_after_deadline_expires_loan(self, services, make_resource, clock, events):
        resource = make_resource()
        loan = services.loans().request_loan(uuid4(), resource.id).data.loan

        clock.advance(minutes=31)
        result = services.loans().expire_pickup(loan.id)

        assert result.is_success
        assert result.data.status == LoanStatus.EXPIRED
        assert result.data.rejection_reason == "pickup deadline passed"
        assert resource.status == ResourceStatus.AVAILABLE
        assert events.of_type("loan.expired")[0].data["reason"] == "pickup deadline passed"

    def test_only_approved_loans_expire_on_pickup(self, services, make_resource, review_category, clock):
        loan = services.loans().request_loan(uuid4(), make_resource(review_category).id).data.loan

        clock.advance(days=1)
        result = services.loans().expire_pickup(loan.id)

        assert result.error.code == ErrorCode.STATE_CONFLICT
        assert loan.status == LoanStatus.PENDING
