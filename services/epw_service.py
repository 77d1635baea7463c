"""
EPW service wiring.

Builds the process-wide key-value store, attribute resolver, exception
store and decoder once, and hands the same instances to every caller.
"""

from typing import Optional
import structlog

from parsers.epw_decoder import EPWDecoder
from services.attribute_resolver import AttributeResolver
from services.exception_store import ExceptionStore
from services.kv_store import KeyValueStore, build_store

logger = structlog.get_logger(__name__)


# Singleton instances
_kv_store: Optional[KeyValueStore] = None
_attribute_resolver: Optional[AttributeResolver] = None
_exception_store: Optional[ExceptionStore] = None
_epw_decoder: Optional[EPWDecoder] = None


def get_kv_store() -> KeyValueStore:
    """Get or create the configured key-value store."""
    global _kv_store
    if _kv_store is None:
        _kv_store = build_store()
    return _kv_store


def get_attribute_resolver() -> AttributeResolver:
    """Get or create the AttributeResolver instance."""
    global _attribute_resolver
    if _attribute_resolver is None:
        _attribute_resolver = AttributeResolver(store=get_kv_store())
    return _attribute_resolver


def get_exception_store() -> ExceptionStore:
    """Get or create the ExceptionStore instance."""
    global _exception_store
    if _exception_store is None:
        _exception_store = ExceptionStore(get_kv_store(), resolver=get_attribute_resolver())
    return _exception_store


def get_epw_decoder() -> EPWDecoder:
    """Get or create the EPWDecoder instance."""
    global _epw_decoder
    if _epw_decoder is None:
        _epw_decoder = EPWDecoder(get_attribute_resolver(), exception_store=get_exception_store())
    return _epw_decoder


async def shutdown() -> None:
    """Close the resolver's HTTP client."""
    if _attribute_resolver is not None:
        await _attribute_resolver.aclose()
        logger.info("attribute_client_closed")


def reset_services() -> None:
    """Drop every singleton (tests, config reload)."""
    global _kv_store, _attribute_resolver, _exception_store, _epw_decoder
    _kv_store = None
    _attribute_resolver = None
    _exception_store = None
    _epw_decoder = None
