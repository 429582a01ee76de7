from wellness_lending.repositories.catalog.resource_repository import ResourceRepository

__all__ = ["ResourceRepository"]
