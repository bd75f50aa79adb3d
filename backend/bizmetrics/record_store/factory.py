"""
Record store factory: maps store type strings to store classes.
"""

import logging
from typing import Dict, Type

from bizmetrics.record_store.base import RecordStore
from bizmetrics.record_store.file_store import FileRecordStore
from bizmetrics.record_store.memory_store import InMemoryRecordStore
from bizmetrics.record_store.rest_store import RestRecordStore
from bizmetrics.record_store.sqlalchemy_store import SQLAlchemyRecordStore

logger = logging.getLogger(__name__)

STORE_REGISTRY: Dict[str, Type[RecordStore]] = {
    "memory": InMemoryRecordStore,
    "sqlalchemy": SQLAlchemyRecordStore,
    "postgresql": SQLAlchemyRecordStore,
    "sqlite": SQLAlchemyRecordStore,
    "rest": RestRecordStore,
    "supabase": RestRecordStore,
    "file": FileRecordStore,
}


def get_record_store(store_type: str, config: dict) -> RecordStore:
    """
    Instantiate a record store by type name.

    Raises ValueError if the type is unknown.
    """
    cls = STORE_REGISTRY.get(store_type)
    if not cls:
        raise ValueError(
            f"Unknown record store type '{store_type}'. "
            f"Available: {sorted(STORE_REGISTRY.keys())}"
        )
    logger.info(f"Using {store_type} record store")
    return cls(config)
