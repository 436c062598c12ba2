from .base import RecordStore
from .json_store import JsonRecordStore
from .memory import InMemoryRecordStore

__all__ = ["InMemoryRecordStore", "JsonRecordStore", "RecordStore"]
