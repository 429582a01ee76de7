"""
Resource repository.
"""

from typing import Iterable, List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from wellness_lending.core.exceptions import OptimisticLockError, ResourceNotFoundError
from wellness_lending.models.base import ResourceStatus
from wellness_lending.models.catalog import Resource
from wellness_lending.repositories.base import BaseRepository


class ResourceRepository(BaseRepository[Resource]):
    """
    Repository for lendable resources.

    Status changes are compare-and-swap: the caller names the status it
    expects, and the versioned UPDATE fails if another transaction moved
    the row first.
    """

    def __init__(self, session: Session):
        super().__init__(Resource, session)

    def get_or_raise(self, resource_id: UUID, lock: bool = False) -> Resource:
        resource = self.get_for_update(resource_id) if lock else self.get_by_id(resource_id)
        if resource is None:
            raise ResourceNotFoundError("Resource", resource_id)
        return resource

    def compare_and_set_status(
        self,
        resource: Resource,
        expected: Iterable[ResourceStatus],
        new_status: ResourceStatus,
    ) -> Resource:
        """
        Move ``resource`` to ``new_status`` if it is currently in ``expected``.

        Raises:
            OptimisticLockError: If the status no longer matches, or the row
                version changed underneath this transaction
        """
        expected = frozenset(expected)
        if resource.status not in expected:
            raise OptimisticLockError(
                f"Resource status is {resource.status.value}, expected one of "
                f"{sorted(s.value for s in expected)}",
                details={"resource_id": str(resource.id), "status": resource.status.value},
            )
        if resource.status != new_status:
            resource.status = new_status
            self.flush()
        return resource

    def find_by_status(self, status: ResourceStatus) -> List[Resource]:
        query = select(Resource).where(Resource.status == status).order_by(Resource.name.asc())
        return list(self.session.execute(query).scalars().all())
