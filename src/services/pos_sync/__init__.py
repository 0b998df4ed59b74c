"""
Vendor staging -> unified sales ledger syncs.
"""
from uuid import UUID

from sqlalchemy.orm import Session

from src.core.exceptions import ValidationError
from src.services.access import Caller
from src.services.pos_sync.base import ConflictPolicy, SyncResult, VendorSync
from src.services.pos_sync.clover import CloverSync
from src.services.pos_sync.shift4 import Shift4Sync
from src.services.pos_sync.square import SquareSync
from src.services.pos_sync.toast import ToastSync

SYNC_SERVICES = {
    "square": SquareSync,
    "clover": CloverSync,
    "toast": ToastSync,
    "shift4": Shift4Sync,
}


def get_sync_service(db: Session, pos_system: str) -> VendorSync:
    try:
        service_cls = SYNC_SERVICES[pos_system]
    except KeyError:
        raise ValidationError(
            f"Unsupported POS system {pos_system!r}; expected one of {', '.join(SYNC_SERVICES)}",
            field="pos_system",
        )
    return service_cls(db)


def sync_square_to_unified_sales(db: Session, restaurant_id: UUID, caller: Caller) -> SyncResult:
    return SquareSync(db).sync(restaurant_id, caller)


def sync_clover_to_unified_sales(db: Session, restaurant_id: UUID, caller: Caller) -> SyncResult:
    return CloverSync(db).sync(restaurant_id, caller)


def sync_toast_to_unified_sales(db: Session, restaurant_id: UUID, caller: Caller) -> SyncResult:
    return ToastSync(db).sync(restaurant_id, caller)


def sync_shift4_to_unified_sales(db: Session, restaurant_id: UUID, caller: Caller) -> SyncResult:
    return Shift4Sync(db).sync(restaurant_id, caller)


__all__ = [
    "ConflictPolicy",
    "SyncResult",
    "VendorSync",
    "SYNC_SERVICES",
    "get_sync_service",
    "sync_square_to_unified_sales",
    "sync_clover_to_unified_sales",
    "sync_toast_to_unified_sales",
    "sync_shift4_to_unified_sales",
]
