from wellness_lending.models.catalog.resource import Resource
from wellness_lending.models.catalog.resource_category import ResourceCategory

__all__ = ["Resource", "ResourceCategory"]
