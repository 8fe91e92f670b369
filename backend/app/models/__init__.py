from app.models.vendor import Vendor, MLMPosition
from app.models.client import Client, ClientStatus
from app.models.commission import CommissionRecord, CommissionKind, CommissionStatus
from app.models.payment import PaymentSchedule, PaymentType, PaymentStatus

__all__ = [
    "Vendor",
    "MLMPosition",
    "Client",
    "ClientStatus",
    "CommissionRecord",
    "CommissionKind",
    "CommissionStatus",
    "PaymentSchedule",
    "PaymentType",
    "PaymentStatus",
]
