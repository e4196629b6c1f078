from .base import Base  # noqa: F401
from .repair_ticket import RepairTicket, RepairStatus, PaymentStatus, PaymentMethod, Priority  # noqa: F401
from .payment_log import PaymentLogEntry, PaymentLogType  # noqa: F401
from .notification_log import NotificationLogEntry  # noqa: F401
from .audit import AuditLog  # noqa: F401
