from .base import Base, TimestampMixin
from .owner import OwnerStoreRecord, UsageLogRecord

__all__ = [
    "Base",
    "TimestampMixin",
    "OwnerStoreRecord",
    "UsageLogRecord",
]
