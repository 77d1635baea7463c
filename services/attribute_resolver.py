"""
Attribute resolver.

Turns (attribute class, raw code) into the best known description.

Tiers, in order of preference:
    1. in-memory cache (filled from the remote attributes API)
    2. persisted second-tier cache (survives restarts, lives 2x longer)
    3. static dictionary
    4. the raw code itself

resolve_sync never does I/O so bulk decoding never waits on the network.
Fetches are coalesced: one in-flight task per attribute class.
"""

import asyncio
from dataclasses import dataclass
import json
import time
from typing import Callable, Iterable, Optional
import structlog

from config.settings import settings
from integrations.epw_attributes_api import EPWAttributesClient
from models.epw import AttributeClass, AttributeEntry, ATTRIBUTE_CLASSES
from parsers import epw_dictionary
from services.kv_store import KeyValueStore

logger = structlog.get_logger(__name__)

PERSISTED_CACHE_KEY_PREFIX = "epw-attributes-cache:"


@dataclass
class CacheEntry:
    """Cached attribute list of one class."""
    data: dict[str, str]
    timestamp: float

    def age(self, now: float) -> float:
        return now - self.timestamp


class AttributeResolver:
    """
    Owns the attribute cache and the in-flight fetch registry.

    Construct once per process and inject it into the parser,
    decoder and exception store.
    """

    def __init__(
        self,
        client: Optional[EPWAttributesClient] = None,
        store: Optional[KeyValueStore] = None,
        ttl_seconds: Optional[float] = None,
        persisted_ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.client = client or EPWAttributesClient()
        self.store = store
        if ttl_seconds is None:
            ttl_seconds = settings.attribute_cache_ttl_seconds
            default_persisted_ttl = settings.persisted_cache_ttl_seconds
        else:
            default_persisted_ttl = ttl_seconds * 2
        self.ttl_seconds = ttl_seconds
        self.persisted_ttl_seconds = (
            persisted_ttl_seconds if persisted_ttl_seconds is not None else default_persisted_ttl
        )
        self._clock = clock
        self._cache: dict[AttributeClass, CacheEntry] = {}
        self._loading: dict[AttributeClass, asyncio.Future] = {}
        self._hydrate_from_store()

    # ===================
    # SYNC LOOKUP
    # ===================

    def resolve_sync(self, attribute_class: AttributeClass, code: str) -> str:
        """
        Describe a code without any I/O.

        Args:
            attribute_class: Class the code belongs to
            code: Raw segment code

        Returns:
            Cached description, dictionary description, or the code itself
        """
        if not code:
            return code

        entry = self._cache.get(attribute_class)
        # Blank cached descriptions count as missing
        cached = entry.data.get(code) if entry is not None else None
        if cached and cached.strip():
            return cached

        description = epw_dictionary.lookup(attribute_class, code)
        return description if description is not None else code

    def is_known(self, attribute_class: AttributeClass, code: str) -> bool:
        """True if the code resolves to something other than itself."""
        return bool(code) and self.resolve_sync(attribute_class, code) != code

    def is_fresh(self, attribute_class: AttributeClass) -> bool:
        entry = self._cache.get(attribute_class)
        return entry is not None and entry.age(self._clock()) < self.ttl_seconds

    def known_entries(self, attribute_class: AttributeClass) -> list[AttributeEntry]:
        """Dictionary entries merged with cached ones (cache wins)."""
        merged = dict(epw_dictionary.EPW_DICTIONARY[attribute_class])
        entry = self._cache.get(attribute_class)
        if entry is not None:
            merged.update({c: d for c, d in entry.data.items() if d.strip()})
        return [AttributeEntry(code=c, description=d) for c, d in merged.items()]

    # ===================
    # ASYNC LOOKUP
    # ===================

    async def resolve_async(self, attribute_class: AttributeClass, code: str) -> str:
        """
        Describe a code, fetching the class list first if it is not fresh.

        Never raises: fetch failures degrade to the sync tiers.
        """
        if not self.is_fresh(attribute_class):
            await self._ensure_loaded(attribute_class)
        return self.resolve_sync(attribute_class, code)

    async def preload(
        self,
        classes: Optional[Iterable[AttributeClass]] = None,
        force: bool = False
    ) -> dict[str, int]:
        """
        Warm several attribute classes concurrently.

        Args:
            classes: Classes to load (all six when omitted)
            force: Refetch even if the cache is fresh

        Returns:
            Number of cached entries per class after loading
        """
        targets = list(classes) if classes is not None else list(ATTRIBUTE_CLASSES)
        logger.info("preloading_attributes", classes=[c.value for c in targets], force=force)

        pending = [
            self._ensure_loaded(c)
            for c in targets
            if force or not self.is_fresh(c)
        ]
        if pending:
            await asyncio.gather(*pending)

        counts = {
            c.value: len(self._cache[c].data) if c in self._cache else 0
            for c in targets
        }
        logger.info("attributes_preloaded", counts=counts)
        return counts

    async def _ensure_loaded(self, attribute_class: AttributeClass) -> None:
        """Join the in-flight fetch for a class, starting one if needed."""
        task = self._loading.get(attribute_class)
        if task is None:
            task = asyncio.ensure_future(self._load(attribute_class))
            self._loading[attribute_class] = task

            def _forget(done: asyncio.Future, cls: AttributeClass = attribute_class) -> None:
                if self._loading.get(cls) is done:
                    del self._loading[cls]

            task.add_done_callback(_forget)
        else:
            logger.debug("attributes_fetch_joined", attribute_class=attribute_class.value)

        # One cancelled caller must not cancel the fetch for the others
        await asyncio.shield(task)

    async def _load(self, attribute_class: AttributeClass) -> None:
        """Fetch one class into the cache. Never raises."""
        try:
            entries = await self.client.fetch(attribute_class)
        except Exception as e:
            logger.warning(
                "attributes_fetch_failed_using_fallback",
                attribute_class=attribute_class.value,
                error=str(e),
                error_type=type(e).__name__
            )
            self._serve_stale(attribute_class)
            return

        described = [e for e in entries if e.description.strip()]
        if len(described) < len(entries):
            logger.warning(
                "attributes_blank_descriptions_skipped",
                attribute_class=attribute_class.value,
                skipped=len(entries) - len(described)
            )

        entry = CacheEntry(
            data={e.code: e.description for e in described},
            timestamp=self._clock()
        )
        self._cache[attribute_class] = entry
        self._write_persisted(attribute_class, entry)
        logger.info("attributes_cached", attribute_class=attribute_class.value, count=len(entry.data))

    def _serve_stale(self, attribute_class: AttributeClass) -> None:
        """After a failed fetch, prefer the newest persisted copy over nothing."""
        persisted = self._read_persisted(attribute_class)
        current = self._cache.get(attribute_class)

        if persisted is not None and (current is None or persisted.timestamp > current.timestamp):
            self._cache[attribute_class] = persisted
            logger.info(
                "attributes_served_from_persisted_cache",
                attribute_class=attribute_class.value,
                count=len(persisted.data)
            )
        elif current is not None:
            logger.info(
                "attributes_served_stale",
                attribute_class=attribute_class.value,
                age_seconds=round(current.age(self._clock()))
            )

    # ===================
    # PERSISTED CACHE
    # ===================

    @staticmethod
    def _persisted_key(attribute_class: AttributeClass) -> str:
        return f"{PERSISTED_CACHE_KEY_PREFIX}{attribute_class.value}"

    def _hydrate_from_store(self) -> None:
        if self.store is None:
            return
        for attribute_class in ATTRIBUTE_CLASSES:
            entry = self._read_persisted(attribute_class)
            if entry is not None:
                self._cache[attribute_class] = entry
        if self._cache:
            logger.info("attribute_cache_hydrated", classes=[c.value for c in self._cache])

    def _read_persisted(self, attribute_class: AttributeClass) -> Optional[CacheEntry]:
        if self.store is None:
            return None

        key = self._persisted_key(attribute_class)
        try:
            raw = self.store.get(key)
        except Exception as e:
            logger.warning("persisted_attribute_cache_read_failed", key=key, error=str(e))
            return None
        if not raw:
            return None

        try:
            doc = json.loads(raw)
            entry = CacheEntry(
                data={str(item["l"]): str(item["d"]) for item in doc["data"]},
                timestamp=float(doc["timestamp"])
            )
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("persisted_attribute_cache_corrupt", key=key, error=str(e))
            return None

        if entry.age(self._clock()) > self.persisted_ttl_seconds:
            logger.debug("persisted_attribute_cache_expired", key=key)
            return None
        return entry

    def _write_persisted(self, attribute_class: AttributeClass, entry: CacheEntry) -> None:
        if self.store is None:
            return

        key = self._persisted_key(attribute_class)
        doc = {
            "data": [{"l": code, "d": desc} for code, desc in entry.data.items()],
            "timestamp": entry.timestamp,
        }
        try:
            self.store.set(key, json.dumps(doc, ensure_ascii=False))
        except Exception as e:
            logger.warning("persisted_attribute_cache_write_failed", key=key, error=str(e))

    # ===================
    # MAINTENANCE
    # ===================

    def clear_cache(self) -> None:
        """Drop in-memory entries and persisted copies."""
        self._cache.clear()
        if self.store is not None:
            for attribute_class in ATTRIBUTE_CLASSES:
                key = self._persisted_key(attribute_class)
                try:
                    self.store.delete(key)
                except Exception as e:
                    logger.warning("persisted_attribute_cache_delete_failed", key=key, error=str(e))
        logger.info("attribute_cache_cleared")

    def cache_status(self) -> list[dict]:
        """Per-class entry count, age and freshness."""
        now = self._clock()
        status = []
        for attribute_class in ATTRIBUTE_CLASSES:
            entry = self._cache.get(attribute_class)
            status.append({
                "attribute_class": attribute_class.value,
                "entries": len(entry.data) if entry else 0,
                "age_seconds": round(entry.age(now), 1) if entry else None,
                "fresh": self.is_fresh(attribute_class),
                "loading": attribute_class in self._loading,
            })
        return status

    async def aclose(self) -> None:
        await self.client.aclose()
