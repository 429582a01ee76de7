from wellness_lending.repositories.loan.loan_repository import LoanRepository
from wellness_lending.repositories.loan.resource_damage_repository import DamageRecordRepository
from wellness_lending.repositories.loan.resource_queue_repository import ResourceQueueRepository

__all__ = ["DamageRecordRepository", "LoanRepository", "ResourceQueueRepository"]
