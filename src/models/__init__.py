"""
SQLAlchemy models for the unified sales ledger.
"""
# Tenancy
from src.models.user import User
from src.models.restaurant import Restaurant, UserRestaurant
from src.models.account import ChartOfAccount

# Vendor staging
from src.models.pos_connection import PosConnection
from src.models.pos_staging import (
    SquareOrder,
    SquareOrderLineItem,
    CloverOrder,
    CloverOrderLineItem,
    ToastOrder,
    ToastOrderItem,
    ToastPayment,
    Shift4Charge,
    Shift4Refund,
)

# Ledger
from src.models.unified_sale import UnifiedSale, UnifiedSaleSplit

# Operations
from src.models.sync_run import SyncRun
from src.models.sync_job import SyncJob, DeadLetterJob, OpsIncident


__all__ = [
    # Tenancy
    "User",
    "Restaurant",
    "UserRestaurant",
    "ChartOfAccount",
    # Staging
    "PosConnection",
    "SquareOrder",
    "SquareOrderLineItem",
    "CloverOrder",
    "CloverOrderLineItem",
    "ToastOrder",
    "ToastOrderItem",
    "ToastPayment",
    "Shift4Charge",
    "Shift4Refund",
    # Ledger
    "UnifiedSale",
    "UnifiedSaleSplit",
    # Operations
    "SyncRun",
    "SyncJob",
    "DeadLetterJob",
    "OpsIncident",
]
