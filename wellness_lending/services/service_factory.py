"""
Service factory for dependency injection and service instantiation.

All services built by one factory share its session, clock and event
dispatcher, so collaborating services contribute to a single transaction
and its events are published once, after the commit.
"""

from typing import Any, Callable, Dict, Mapping, Optional, TypeVar

from sqlalchemy.orm import Session

from wellness_lending.config.logging import get_logger
from wellness_lending.core.events.event_bus import EventBus
from wellness_lending.core.utils import Clock, utcnow
from wellness_lending.repositories.loan import (
    DamageRecordRepository,
    LoanRepository,
    ResourceQueueRepository,
)
from wellness_lending.repositories.student import BehavioralStatusRepository, WellnessHoursRepository
from wellness_lending.repositories.system import AlertRepository, SystemSettingRepository
from wellness_lending.services.base import EventDispatcher
from wellness_lending.services.damage import DamageAdjudicationService
from wellness_lending.services.loan import LoanLifecycleService, LoanSweepService
from wellness_lending.services.notification import AlertService
from wellness_lending.services.queue import ResourceQueueService
from wellness_lending.services.settings import PolicySettingsService
from wellness_lending.services.trust import TrustScoreService
from wellness_lending.services.wellness import WellnessHoursService

TService = TypeVar("TService")


class ServiceFactory:
    """
    Factory for creating service instances with dependency injection.

    Provides:
    - Centralized service creation
    - One shared event dispatcher per factory
    - Service caching/reuse
    """

    def __init__(
        self,
        db_session: Session,
        bus: Optional[EventBus] = None,
        clock: Clock = utcnow,
        policy_defaults: Optional[Mapping[str, Any]] = None,
        with_alerts: bool = True,
    ):
        """
        Initialize service factory.

        Args:
            db_session: SQLAlchemy database session
            bus: Event bus to publish on (a private one if omitted)
            clock: Source of the current time for every service
            policy_defaults: Policy values used for keys never stored
            with_alerts: Persist alerts for published events
        """
        self.db = db_session
        self.bus = bus or EventBus()
        self.clock = clock
        self.policy_defaults = dict(policy_defaults or {})
        self.dispatcher = EventDispatcher(self.bus)
        self._logger = get_logger(self.__class__.__name__)

        # Service cache to reuse instances
        self._service_cache: Dict[str, Any] = {}

        if with_alerts:
            self.alerts().subscribe(self.bus)

    def _cached(self, cache_key: str, builder: Callable[[], TService]) -> TService:
        if cache_key not in self._service_cache:
            self._service_cache[cache_key] = builder()
            self._logger.debug(f"Created {cache_key} instance")
        return self._service_cache[cache_key]

    # -------------------------------------------------------------------------
    # Service Getters
    # -------------------------------------------------------------------------

    def settings(self) -> PolicySettingsService:
        return self._cached(
            "settings_service",
            lambda: PolicySettingsService(
                SystemSettingRepository(self.db),
                self.db,
                self.dispatcher,
                self.clock,
                defaults=self.policy_defaults,
            ),
        )

    def trust(self) -> TrustScoreService:
        return self._cached(
            "trust_service",
            lambda: TrustScoreService(
                BehavioralStatusRepository(self.db),
                self.db,
                self.settings(),
                self.dispatcher,
                self.clock,
            ),
        )

    def wellness(self) -> WellnessHoursService:
        return self._cached(
            "wellness_service",
            lambda: WellnessHoursService(
                WellnessHoursRepository(self.db),
                self.db,
                self.settings(),
                self.dispatcher,
                self.clock,
            ),
        )

    def queue(self) -> ResourceQueueService:
        # Built with the loan service, which converts notified entries
        return self.loans().queue_service

    def damage(self) -> DamageAdjudicationService:
        return self._cached(
            "damage_service",
            lambda: DamageAdjudicationService(
                DamageRecordRepository(self.db),
                self.db,
                self.settings(),
                self.trust(),
                self.wellness(),
                self.dispatcher,
                self.clock,
            ),
        )

    def loans(self) -> LoanLifecycleService:
        return self._cached("loan_service", self._build_loan_service)

    def _build_loan_service(self) -> LoanLifecycleService:
        queue_service = ResourceQueueService(
            ResourceQueueRepository(self.db),
            self.db,
            self.settings(),
            self.dispatcher,
            self.clock,
        )
        return LoanLifecycleService(
            LoanRepository(self.db),
            self.db,
            self.settings(),
            self.trust(),
            queue_service,
            self.wellness(),
            self.damage(),
            self.dispatcher,
            self.clock,
        )

    def sweep(self) -> LoanSweepService:
        return self._cached(
            "sweep_service",
            lambda: LoanSweepService(
                LoanRepository(self.db),
                self.db,
                self.loans(),
                self.dispatcher,
                self.clock,
            ),
        )

    def alerts(self) -> AlertService:
        return self._cached(
            "alert_service",
            lambda: AlertService(AlertRepository(self.db), self.db, self.clock),
        )
