from wellness_lending.services.queue.resource_queue_service import ResourceQueueService

__all__ = ["ResourceQueueService"]
