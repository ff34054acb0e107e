"""Store manager wiring the record service and the object store together.

Reads its configuration from the environment and offers an awaitable
gateway to the blocking SQLite service so the async pipeline never runs
database calls on the event loop.
"""

import asyncio
import os
from typing import Any, Callable, Optional

from loguru import logger

from contractgen.error_handling import ConfigurationError
from storage.object_store import LocalObjectStore, ObjectStore
from storage.record_service import ContractRecordService

DEFAULT_DATABASE_URL = "sqlite:///./contract_generator.db"
DEFAULT_STORAGE_DIR = "./documents"


def sqlite_path_from_url(database_url: str) -> str:
    """Turn ``sqlite:///path`` into a filesystem path.

    Raises:
        ConfigurationError: For any non-SQLite URL
    """
    if database_url.startswith("sqlite:///"):
        return database_url.replace("sqlite:///", "", 1)
    if "://" in database_url:
        raise ConfigurationError(f"Unsupported DATABASE_URL scheme: {database_url.split('://')[0]}")
    return database_url


class StoreManager:
    """Owns the relational store and the document store."""

    def __init__(self, records: ContractRecordService, documents: ObjectStore):
        self.records = records
        self.documents = documents

    async def run(self, func: Callable[..., Any], *args, **kwargs) -> Any:
        """Run a blocking record-service call in a worker thread."""
        return await asyncio.to_thread(func, *args, **kwargs)


def create_store_manager(
    db_path: Optional[str] = None,
    storage_dir: Optional[str] = None,
    public_base_url: Optional[str] = None
) -> StoreManager:
    """Factory function to create a StoreManager with environment-based configuration.

    Args:
        db_path: Optional database path (uses DATABASE_URL if not provided)
        storage_dir: Optional document directory (uses DOCUMENT_STORAGE_DIR if not provided)
        public_base_url: Optional public URL prefix (uses DOCUMENT_PUBLIC_BASE_URL if not provided)

    Returns:
        Configured StoreManager instance
    """
    if db_path is None:
        db_path = sqlite_path_from_url(os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL))
    storage_dir = storage_dir or os.getenv("DOCUMENT_STORAGE_DIR", DEFAULT_STORAGE_DIR)
    public_base_url = public_base_url or os.getenv("DOCUMENT_PUBLIC_BASE_URL") or None

    logger.info("Creating store manager", db_path=db_path, storage_dir=storage_dir)
    return StoreManager(
        records=ContractRecordService(db_path=db_path),
        documents=LocalObjectStore(base_dir=storage_dir, public_base_url=public_base_url),
    )
