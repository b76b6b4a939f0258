import enum


class UserRole(str, enum.Enum):
    BUYER = "buyer"
    SUPPLIER = "supplier"
    ADMIN = "admin"


class RFQStatus(str, enum.Enum):
    ACTIVE = "active"
    QUOTED = "quoted"
    ACCEPTED = "accepted"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    CLOSED_EXTERNAL = "closed_external"


class QuoteStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


class RFQUrgency(str, enum.Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class NotificationType(str, enum.Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    RFQ_CREATED = "rfq_created"
    QUOTE_RECEIVED = "quote_received"
    QUOTE_ACCEPTED = "quote_accepted"
    DEAL_CHECK = "deal_check"
    DEAL_CONFIRMED = "deal_confirmed"
    SYSTEM_ALERT = "system_alert"


class ActionKind(str, enum.Enum):
    RFQ = "rfq"
    QUOTE = "quote"
