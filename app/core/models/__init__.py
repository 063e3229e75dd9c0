from app.auth.models import Mentor, Professor, Student, User
from app.core.models.audit_log import AuditLog
from app.core.models.bank_account import BankAccount
from app.core.models.impersonation_session import ImpersonationSession
from app.core.models.mission import Mission
from app.core.models.pack import Pack
from app.core.models.payment import Payment, PaymentAllocation
from app.core.models.payment_schedule import PaymentSchedule
from app.core.models.quote import Quote, QuoteItem

__all__ = [
    "AuditLog",
    "BankAccount",
    "ImpersonationSession",
    "Mentor",
    "Mission",
    "Pack",
    "Payment",
    "PaymentAllocation",
    "PaymentSchedule",
    "Professor",
    "Quote",
    "QuoteItem",
    "Student",
    "User",
]
