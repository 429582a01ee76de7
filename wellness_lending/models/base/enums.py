"""
Database enums shared by models and schemas.
"""

import enum


class ResourceStatus(str, enum.Enum):
    """Physical availability of a lendable resource."""
    AVAILABLE = "available"
    BORROWED = "borrowed"
    RESERVED = "reserved"
    MAINTENANCE = "maintenance"
    RETIRED = "retired"


class LoanStatus(str, enum.Enum):
    """Loan lifecycle status."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ACTIVE = "active"
    RETURNED = "returned"
    OVERDUE = "overdue"
    LOST = "lost"
    DAMAGED = "damaged"
    EXPIRED = "expired"
    QUEUED = "queued"


class DecisionSource(str, enum.Enum):
    """Who decided on a loan request."""
    AUTOMATIC = "automatic"
    HUMAN = "human"


class QueueStatus(str, enum.Enum):
    """Waiting list entry status."""
    WAITING = "waiting"
    NOTIFIED = "notified"
    EXPIRED = "expired"
    CONVERTED = "converted"
    CANCELLED = "cancelled"


class DamageType(str, enum.Enum):
    """Kind of incident reported on a loan."""
    DAMAGE = "damage"
    LOSS = "loss"
    THEFT = "theft"


class DamageSeverity(str, enum.Enum):
    """Severity of a reported incident."""
    MINOR = "minor"
    MODERATE = "moderate"
    SEVERE = "severe"
    TOTAL_LOSS = "total_loss"


class DamageRecordStatus(str, enum.Enum):
    """Review status of a damage record."""
    REPORTED = "reported"
    REVIEWED = "reviewed"
    RESOLVED = "resolved"
    WAIVED = "waived"


class SettingCategory(str, enum.Enum):
    """Grouping of policy settings."""
    LOANS = "loans"
    WELLNESS = "wellness"
    PENALTIES = "penalties"
    SECURITY = "security"
    NOTIFICATIONS = "notifications"


class WellnessSourceType(str, enum.Enum):
    """Origin of a wellness hours entry."""
    LOAN = "loan"
    EVENT = "event"


class AlertTargetRole(str, enum.Enum):
    """Audience of an alert."""
    ADMIN = "admin"
    STUDENT = "student"
