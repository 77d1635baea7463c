"""
Business logic services.

Each service handles one concern of the EPW decoder.
"""

from services.kv_store import (
    KeyValueStore,
    MemoryStore,
    JsonFileStore,
    SupabaseStore,
    build_store,
)
from services.attribute_resolver import AttributeResolver
from services.exception_store import ExceptionStore
from services.epw_service import (
    get_kv_store,
    get_attribute_resolver,
    get_exception_store,
    get_epw_decoder,
)

__all__ = [
    # Storage
    "KeyValueStore",
    "MemoryStore",
    "JsonFileStore",
    "SupabaseStore",
    "build_store",

    # EPW
    "AttributeResolver",
    "ExceptionStore",
    "get_kv_store",
    "get_attribute_resolver",
    "get_exception_store",
    "get_epw_decoder",
]
