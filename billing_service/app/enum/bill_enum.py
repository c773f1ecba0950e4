from enum import Enum


class BillStatus(str, Enum):
    PENDING = "PENDING"
    OVERDUE = "OVERDUE"
    PAID = "PAID"
    RECEIPT_SENT = "RECEIPT_SENT"


# from -> allowed targets
BILL_TRANSITIONS: dict[BillStatus, frozenset[BillStatus]] = {
    BillStatus.PENDING: frozenset({BillStatus.OVERDUE, BillStatus.PAID, BillStatus.RECEIPT_SENT}),
    BillStatus.OVERDUE: frozenset({BillStatus.PAID}),
    BillStatus.PAID: frozenset({BillStatus.PENDING, BillStatus.RECEIPT_SENT}),
    BillStatus.RECEIPT_SENT: frozenset({BillStatus.PAID}),
}


def allowed_sources(target: BillStatus) -> list[BillStatus]:
    """Every status that may legally move to ``target``."""
    return [source for source, targets in BILL_TRANSITIONS.items() if target in targets]


class BillLanguage(str, Enum):
    fr = "fr"
    en = "en"


class LeaseStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    EXPIRED = "EXPIRED"


class NotificationSeverity(str, Enum):
    success = "success"
    warning = "warning"
    error = "error"
