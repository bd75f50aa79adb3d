"""Record store adapters package."""
from bizmetrics.record_store.base import RecordStore, RecordStoreError
from bizmetrics.record_store.factory import get_record_store, STORE_REGISTRY

__all__ = ["RecordStore", "RecordStoreError", "get_record_store", "STORE_REGISTRY"]
