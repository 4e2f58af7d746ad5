"""Services for the clinic stock kernel (write side)."""

from clinic_stock.services.sequence_service import SequenceService
from clinic_stock.services.account_service import AccountService, LoginAttemptTracker
from clinic_stock.services.alerts import (
    LoggingAlertSink,
    RecordingAlertSink,
    StockAlert,
    StockAlertSink,
)
from clinic_stock.services.stock_service import StockService
from clinic_stock.services.user_admin_service import UserAdminService

__all__ = [
    "AccountService",
    "LoggingAlertSink",
    "LoginAttemptTracker",
    "RecordingAlertSink",
    "SequenceService",
    "StockAlert",
    "StockAlertSink",
    "StockService",
    "UserAdminService",
]
