"""Storage package: relational records and document objects."""

from storage.object_store import LocalObjectStore, ObjectStore
from storage.record_service import ContractRecordService
from storage.store_manager import StoreManager, create_store_manager

__all__ = [
    "ContractRecordService",
    "LocalObjectStore",
    "ObjectStore",
    "StoreManager",
    "create_store_manager",
]
