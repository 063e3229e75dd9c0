from enum import Enum


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    EXECUTIVE_CHEF = "EXECUTIVE_CHEF"
    MENTOR = "MENTOR"
    PROFESSOR = "PROFESSOR"
    STUDENT = "STUDENT"


class Currency(str, Enum):
    EUR = "EUR"
    MAD = "MAD"
    USD = "USD"


class ScheduleStatus(str, Enum):
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    OVERDUE = "OVERDUE"


class QuoteStatus(str, Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    VALIDATED = "VALIDATED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


class MissionStatus(str, Enum):
    PENDING = "PENDING"
    VALIDATED = "VALIDATED"
    REJECTED = "REJECTED"
    PAID = "PAID"


class MissionType(str, Enum):
    MENTOR = "MENTOR"
    PROFESSOR = "PROFESSOR"


class PaymentType(str, Enum):
    STUDENT = "STUDENT"
    MENTOR = "MENTOR"
    PROFESSOR = "PROFESSOR"


class AuditAction(str, Enum):
    START_IMPERSONATION = "START_IMPERSONATION"
    END_IMPERSONATION = "END_IMPERSONATION"
    CHANGE_PASSWORD = "CHANGE_PASSWORD"
    ALLOCATE_PAYMENT = "ALLOCATE_PAYMENT"
    VALIDATE_MISSION = "VALIDATE_MISSION"
    REJECT_MISSION = "REJECT_MISSION"
    SEND_QUOTE = "SEND_QUOTE"
    VALIDATE_QUOTE = "VALIDATE_QUOTE"
