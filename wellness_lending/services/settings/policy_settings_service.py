"""
Settings store for lending policy.

Reads the ``system_settings`` table into an immutable ``PolicySettings``
object shared by reference with every decisioning service. Changes take
effect on the next decision; nothing is recomputed retroactively.
"""

from typing import Any, Dict, List, Mapping, Optional
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from wellness_lending.core.exceptions import InvalidConfigurationError, ValidationError
from wellness_lending.core.utils import Clock, utcnow
from wellness_lending.models.base import SettingCategory
from wellness_lending.models.system import SystemSetting
from wellness_lending.repositories.system import SystemSettingRepository
from wellness_lending.services.base import BaseService, EventDispatcher, ServiceResult
from wellness_lending.services.settings.policy_settings import (
    PolicySettings,
    normalize_raw_settings,
)


class PolicySettingsService(BaseService[SystemSetting, SystemSettingRepository]):
    """
    Load, validate and update lending policy.

    ``policy`` is loaded on first access. ``refresh()`` re-reads the table;
    ``update_setting()`` validates the new value against the bounds before
    it is stored.
    """

    def __init__(
        self,
        repository: SystemSettingRepository,
        db_session: Session,
        dispatcher: Optional[EventDispatcher] = None,
        clock: Clock = utcnow,
        defaults: Optional[Mapping[str, Any]] = None,
    ):
        super().__init__(repository, db_session, dispatcher, clock)
        self._defaults: Dict[str, Any] = normalize_raw_settings(defaults or {})
        self._policy: Optional[PolicySettings] = None

    @property
    def policy(self) -> PolicySettings:
        if self._policy is None:
            self._policy = self._load()
        return self._policy

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def _load(self) -> PolicySettings:
        stored = {setting.key: setting.value for setting in self.repository.list_all()}
        raw = dict(self._defaults)
        raw.update(normalize_raw_settings(stored))
        ignored = sorted(set(raw) - set(PolicySettings.model_fields))
        if ignored:
            self._logger.debug(f"Ignoring non-policy settings: {', '.join(ignored)}")
        return self._validate(raw)

    def _validate(self, raw: Mapping[str, Any]) -> PolicySettings:
        try:
            return PolicySettings.model_validate(raw)
        except PydanticValidationError as e:
            first = e.errors()[0]
            key = ".".join(str(part) for part in first["loc"]) or "policy"
            raise InvalidConfigurationError(key, f"Invalid setting {key}: {first['msg']}") from e

    def refresh(self) -> ServiceResult[PolicySettings]:
        """Re-read the settings table."""
        try:
            self._policy = self._load()
            self._logger.info("Policy settings reloaded")
            return ServiceResult.success(self._policy, message="Policy settings reloaded")
        except Exception as e:
            return self._handle_exception(e, "reload policy settings")

    # -------------------------------------------------------------------------
    # Updates
    # -------------------------------------------------------------------------

    def update_setting(self, key: str, value: Any, actor_id: Optional[UUID] = None) -> ServiceResult[PolicySettings]:
        """
        Validate and persist a single setting.

        Legacy key names are accepted and stored under their current name.
        """
        return self.update_settings({key: value}, actor_id=actor_id)

    def update_settings(
        self,
        values: Mapping[str, Any],
        actor_id: Optional[UUID] = None,
    ) -> ServiceResult[PolicySettings]:
        """Validate and persist several settings as one change."""

        def work() -> PolicySettings:
            normalized = normalize_raw_settings(values)
            unknown = [key for key in normalized if key not in PolicySettings.model_fields]
            if unknown:
                raise ValidationError(
                    f"Unknown setting(s): {', '.join(sorted(unknown))}",
                    field_errors={key: ["Unknown setting"] for key in unknown},
                )

            current = self.policy.model_dump()
            current.update(normalized)
            candidate = self._validate(current)

            stored_values = candidate.model_dump(mode="json")
            for key in normalized:
                self.repository.upsert(
                    key,
                    stored_values[key],
                    PolicySettings.category_of(key),
                    PolicySettings.description_of(key),
                )

            self._logger.info(
                f"Policy settings updated: {', '.join(sorted(normalized))}",
                extra={"user_id": str(actor_id) if actor_id else None},
            )
            return candidate

        result = self._execute("update policy settings", work, entity_ref=",".join(values))
        if result.is_success:
            self._policy = result.data
        return result

    def seed_defaults(self) -> ServiceResult[int]:
        """Store every policy key that has no row yet. Returns rows written."""

        def work() -> int:
            written = 0
            values = self.policy.model_dump(mode="json")
            for key, value in values.items():
                if self.repository.get_by_key(key) is None:
                    self.repository.upsert(
                        key,
                        value,
                        PolicySettings.category_of(key),
                        PolicySettings.description_of(key),
                    )
                    written += 1
            return written

        return self._execute("seed policy settings", work)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def list_settings(self, category: Optional[SettingCategory] = None) -> ServiceResult[List[Dict[str, Any]]]:
        """Effective value of every policy key with its category and description."""
        try:
            stored = {s.key for s in self.repository.list_all()}
            values = self.policy.model_dump(mode="json")
            items = []
            for key, value in values.items():
                key_category = PolicySettings.category_of(key)
                if category is not None and key_category != category:
                    continue
                items.append(
                    {
                        "key": key,
                        "value": value,
                        "category": key_category.value,
                        "description": PolicySettings.description_of(key),
                        "is_stored": key in stored,
                    }
                )
            return ServiceResult.success(items)
        except Exception as e:
            return self._handle_exception(e, "list policy settings")
