from wellness_lending.schemas.queue.queue_entry import QueueAction, QueueEnqueue, QueueEntryResponse

__all__ = ["QueueAction", "QueueEnqueue", "QueueEntryResponse"]
