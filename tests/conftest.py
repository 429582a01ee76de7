"""
Pytest configuration and fixtures
"""
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session, sessionmaker

from wellness_lending.config.database import create_db_engine, init_db
from wellness_lending.core.events.base_event import BaseEvent
from wellness_lending.core.events.event_bus import ALL_EVENTS, EventBus
from wellness_lending.models.base import LoanStatus, ResourceStatus
from wellness_lending.models.catalog import Resource, ResourceCategory
from wellness_lending.services import ServiceFactory

START = datetime(2025, 3, 3, 9, 0, 0)


class FrozenClock:
    """Clock that only moves when a test advances it."""

    def __init__(self, start: datetime = START):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: Any) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


class EventRecorder:
    """Collects every event published on a bus."""

    def __init__(self):
        self.events: List[BaseEvent] = []

    def __call__(self, event: BaseEvent) -> None:
        self.events.append(event)

    @property
    def types(self) -> List[str]:
        return [event.event_type for event in self.events]

    def of_type(self, event_type: str) -> List[BaseEvent]:
        return [event for event in self.events if event.event_type == event_type]


@pytest.fixture(scope="function")
def engine():
    """Fresh in-memory database per test"""
    engine = create_db_engine("sqlite://")
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db(engine) -> Session:
    """Create a database session for testing"""
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def events(bus) -> EventRecorder:
    recorder = EventRecorder()
    bus.subscribe(ALL_EVENTS, recorder)
    return recorder


@pytest.fixture
def services(db, bus, clock, events) -> ServiceFactory:
    return ServiceFactory(db, bus=bus, clock=clock)


@pytest.fixture
def admin_id():
    return uuid4()


@pytest.fixture
def make_category(db):
    def _make(name: str = None, **overrides: Any) -> ResourceCategory:
        values: Dict[str, Any] = {
            "name": name or f"category-{uuid4().hex[:8]}",
            "base_wellness_hours": 1.0,
            "hourly_factor": 0.0,
            "is_low_risk": True,
            "requires_approval": False,
            "replacement_cost": Decimal("100.00"),
        }
        values.update(overrides)
        category = ResourceCategory(**values)
        db.add(category)
        db.commit()
        return category

    return _make


@pytest.fixture
def make_resource(db, make_category):
    def _make(
        category: ResourceCategory = None,
        name: str = "Yoga mat",
        status: ResourceStatus = ResourceStatus.AVAILABLE,
        uncategorized: bool = False,
    ) -> Resource:
        if category is None and not uncategorized:
            category = make_category()
        resource = Resource(
            name=name,
            category_id=category.id if category is not None else None,
            status=status,
        )
        db.add(resource)
        db.commit()
        return resource

    return _make


@pytest.fixture
def review_category(make_category) -> ResourceCategory:
    """Category whose requests always go to an administrator."""
    return make_category("Massage chairs", is_low_risk=False, requires_approval=True)


@pytest.fixture
def borrow(services, admin_id):
    """Take a resource from request to an active loan."""

    def _borrow(student_id, resource):
        loans = services.loans()
        outcome = loans.request_loan(student_id, resource.id)
        assert outcome.is_success, outcome.message
        loan = outcome.data.loan
        assert loan is not None, f"request was {outcome.data.kind}"
        if loan.status == LoanStatus.PENDING:
            approved = loans.approve_loan(admin_id, loan.id)
            assert approved.is_success, approved.message
        picked_up = loans.record_pickup(loan.id)
        assert picked_up.is_success, picked_up.message
        return picked_up.data

    return _borrow


@pytest.fixture
def client(db):
    """API client bound to the test session"""
    from fastapi.testclient import TestClient

    from wellness_lending.api import deps
    from wellness_lending.main import create_app

    app = create_app()

    def override_get_db():
        yield db

    app.dependency_overrides[deps.get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
