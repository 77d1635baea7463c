"""
Unit tests for AttributeResolver.

Run: pytest tests/unit/test_attribute_resolver.py -v
"""

import asyncio
import json
import pytest

from models.epw import AttributeClass
from services.attribute_resolver import AttributeResolver, PERSISTED_CACHE_KEY_PREFIX
from tests.conftest import FakeAttributesClient

TTL = 30 * 60


class TestResolveSync:
    """Tests for AttributeResolver.resolve_sync()"""

    def test_dictionary_fallback(self, resolver):
        assert resolver.resolve_sync(AttributeClass.TIPO, "R") == "Régua"

    def test_unknown_code_returns_code(self, resolver):
        assert resolver.resolve_sync(AttributeClass.TIPO, "QQ") == "QQ"

    def test_empty_code_returns_empty(self, resolver):
        assert resolver.resolve_sync(AttributeClass.COR, "") == ""

    @pytest.mark.asyncio
    async def test_cached_value_wins_over_dictionary(self, resolver, fake_client):
        fake_client.responses[AttributeClass.COR] = {"C": "Castanho"}
        await resolver.preload([AttributeClass.COR])

        assert resolver.resolve_sync(AttributeClass.COR, "C") == "Castanho"
        # Codes missing from the fetched list still use the dictionary
        assert resolver.resolve_sync(AttributeClass.COR, "L") == "Branco"

    @pytest.mark.asyncio
    async def test_blank_fetched_description_falls_through(self, resolver, fake_client):
        fake_client.responses[AttributeClass.TIPO] = {"R": "", "C": "Calha Nova"}
        fake_client.responses[AttributeClass.COR] = {"Q": "   "}
        await resolver.preload([AttributeClass.TIPO, AttributeClass.COR])

        assert resolver.resolve_sync(AttributeClass.TIPO, "R") == "Régua"
        assert resolver.resolve_sync(AttributeClass.TIPO, "C") == "Calha Nova"
        assert resolver.resolve_sync(AttributeClass.COR, "Q") == "Quartzo"

    def test_blank_persisted_description_falls_through(self, memory_store, clock):
        memory_store.set(
            f"{PERSISTED_CACHE_KEY_PREFIX}tipo",
            json.dumps({"data": [{"l": "R", "d": ""}], "timestamp": clock()})
        )

        resolver = AttributeResolver(client=FakeAttributesClient(), store=memory_store, ttl_seconds=TTL, clock=clock)

        assert resolver.resolve_sync(AttributeClass.TIPO, "R") == "Régua"
        entries = {e.code: e.description for e in resolver.known_entries(AttributeClass.TIPO)}
        assert entries["R"] == "Régua"

    def test_resolve_sync_never_fetches(self, resolver, fake_client):
        resolver.resolve_sync(AttributeClass.MODELO, "C")

        assert fake_client.calls == []


class TestResolveAsync:
    """Tests for AttributeResolver.resolve_async() and fetch coalescing."""

    @pytest.mark.asyncio
    async def test_fetches_when_not_fresh(self, resolver, fake_client):
        fake_client.responses[AttributeClass.CERTIF] = {"S": "Standard"}

        result = await resolver.resolve_async(AttributeClass.CERTIF, "S")

        assert result == "Standard"
        assert fake_client.calls == [AttributeClass.CERTIF]

    @pytest.mark.asyncio
    async def test_fresh_cache_skips_fetch(self, resolver, fake_client, clock):
        await resolver.resolve_async(AttributeClass.CERTIF, "S")
        clock.advance(TTL - 1)
        await resolver.resolve_async(AttributeClass.CERTIF, "S")

        assert fake_client.calls == [AttributeClass.CERTIF]

    @pytest.mark.asyncio
    async def test_expired_cache_refetches(self, resolver, fake_client, clock):
        await resolver.resolve_async(AttributeClass.CERTIF, "S")
        clock.advance(TTL + 1)

        assert resolver.is_fresh(AttributeClass.CERTIF) is False
        await resolver.resolve_async(AttributeClass.CERTIF, "S")

        assert fake_client.calls == [AttributeClass.CERTIF, AttributeClass.CERTIF]

    @pytest.mark.asyncio
    async def test_concurrent_calls_share_one_fetch(self, resolver, fake_client):
        fake_client.responses[AttributeClass.MODELO] = {"C": "Classic"}
        fake_client.gate = asyncio.Event()

        pending = [
            asyncio.ensure_future(resolver.resolve_async(AttributeClass.MODELO, "C"))
            for _ in range(5)
        ]
        await asyncio.sleep(0)
        fake_client.gate.set()
        results = await asyncio.gather(*pending)

        assert results == ["Classic"] * 5
        assert fake_client.calls == [AttributeClass.MODELO]

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_cancel_fetch(self, resolver, fake_client):
        fake_client.responses[AttributeClass.MODELO] = {"C": "Classic"}
        fake_client.gate = asyncio.Event()

        first = asyncio.ensure_future(resolver.resolve_async(AttributeClass.MODELO, "C"))
        second = asyncio.ensure_future(resolver.resolve_async(AttributeClass.MODELO, "C"))
        await asyncio.sleep(0)
        first.cancel()
        fake_client.gate.set()

        assert await second == "Classic"
        with pytest.raises(asyncio.CancelledError):
            await first

    @pytest.mark.asyncio
    async def test_fetch_failure_falls_back_to_dictionary(self, resolver, fake_client):
        fake_client.failing.add(AttributeClass.TIPO)

        assert await resolver.resolve_async(AttributeClass.TIPO, "R") == "Régua"

    @pytest.mark.asyncio
    async def test_fetch_failure_serves_stale_cache(self, resolver, fake_client, clock):
        fake_client.responses[AttributeClass.COR] = {"C": "Castanho"}
        await resolver.preload([AttributeClass.COR])
        clock.advance(TTL + 1)
        fake_client.failing.add(AttributeClass.COR)

        assert await resolver.resolve_async(AttributeClass.COR, "C") == "Castanho"


class TestPersistedCache:
    """Second-tier cache shared through the key-value store."""

    @pytest.mark.asyncio
    async def test_fetch_writes_persisted_copy(self, resolver, fake_client, memory_store):
        fake_client.responses[AttributeClass.COR] = {"C": "Castanho"}
        await resolver.preload([AttributeClass.COR])

        doc = json.loads(memory_store.get(f"{PERSISTED_CACHE_KEY_PREFIX}cor"))
        assert doc["data"] == [{"l": "C", "d": "Castanho"}]
        assert "timestamp" in doc

    @pytest.mark.asyncio
    async def test_new_resolver_hydrates_from_store(self, resolver, fake_client, memory_store, clock):
        fake_client.responses[AttributeClass.COR] = {"C": "Castanho"}
        await resolver.preload([AttributeClass.COR])

        other_client = FakeAttributesClient()
        other = AttributeResolver(client=other_client, store=memory_store, ttl_seconds=TTL, clock=clock)

        assert other.resolve_sync(AttributeClass.COR, "C") == "Castanho"
        assert other_client.calls == []

    @pytest.mark.asyncio
    async def test_persisted_copy_expires_after_twice_the_ttl(self, resolver, fake_client, memory_store, clock):
        fake_client.responses[AttributeClass.COR] = {"C": "Castanho"}
        await resolver.preload([AttributeClass.COR])
        clock.advance(2 * TTL + 1)

        other = AttributeResolver(client=FakeAttributesClient(), store=memory_store, ttl_seconds=TTL, clock=clock)

        assert other.resolve_sync(AttributeClass.COR, "C") == "Chocolate"

    @pytest.mark.asyncio
    async def test_failed_fetch_uses_persisted_copy(self, memory_store, clock):
        failing_client = FakeAttributesClient()
        failing_client.failing.add(AttributeClass.COR)
        cold = AttributeResolver(client=failing_client, store=memory_store, ttl_seconds=TTL, clock=clock)

        warm = AttributeResolver(
            client=FakeAttributesClient({AttributeClass.COR: {"C": "Castanho"}}),
            store=memory_store,
            ttl_seconds=TTL,
            clock=clock,
        )
        await warm.preload([AttributeClass.COR])

        assert await cold.resolve_async(AttributeClass.COR, "C") == "Castanho"

    def test_default_windows_come_from_settings(self):
        from config.settings import settings

        resolver = AttributeResolver(client=FakeAttributesClient())

        assert resolver.ttl_seconds == settings.attribute_cache_ttl_seconds
        assert resolver.persisted_ttl_seconds == settings.persisted_cache_ttl_seconds

    def test_corrupt_persisted_copy_is_ignored(self, memory_store, clock):
        memory_store.set(f"{PERSISTED_CACHE_KEY_PREFIX}cor", "{not json")

        resolver = AttributeResolver(client=FakeAttributesClient(), store=memory_store, ttl_seconds=TTL, clock=clock)

        assert resolver.resolve_sync(AttributeClass.COR, "C") == "Chocolate"


class TestPreload:
    """Tests for AttributeResolver.preload()"""

    @pytest.mark.asyncio
    async def test_preload_all_classes(self, resolver, fake_client):
        fake_client.responses[AttributeClass.TIPO] = {"R": "Régua", "C": "Calha"}

        counts = await resolver.preload()

        assert set(fake_client.calls) == set(AttributeClass)
        assert counts["tipo"] == 2
        assert counts["cor"] == 0

    @pytest.mark.asyncio
    async def test_one_failing_class_does_not_block_others(self, resolver, fake_client):
        fake_client.responses[AttributeClass.COR] = {"C": "Castanho"}
        fake_client.failing.add(AttributeClass.TIPO)

        counts = await resolver.preload([AttributeClass.TIPO, AttributeClass.COR])

        assert counts == {"tipo": 0, "cor": 1}
        assert resolver.is_fresh(AttributeClass.COR) is True
        assert resolver.is_fresh(AttributeClass.TIPO) is False

    @pytest.mark.asyncio
    async def test_preload_skips_fresh_classes_unless_forced(self, resolver, fake_client):
        await resolver.preload([AttributeClass.COR])
        await resolver.preload([AttributeClass.COR])
        await resolver.preload([AttributeClass.COR], force=True)

        assert fake_client.calls == [AttributeClass.COR, AttributeClass.COR]


class TestMaintenance:

    @pytest.mark.asyncio
    async def test_clear_cache_drops_memory_and_persisted(self, resolver, fake_client, memory_store):
        fake_client.responses[AttributeClass.COR] = {"C": "Castanho"}
        await resolver.preload([AttributeClass.COR])

        resolver.clear_cache()

        assert resolver.resolve_sync(AttributeClass.COR, "C") == "Chocolate"
        assert memory_store.get(f"{PERSISTED_CACHE_KEY_PREFIX}cor") is None

    @pytest.mark.asyncio
    async def test_cache_status(self, resolver, fake_client):
        fake_client.responses[AttributeClass.COR] = {"C": "Castanho"}
        await resolver.preload([AttributeClass.COR])

        status = {s["attribute_class"]: s for s in resolver.cache_status()}

        assert status["cor"]["entries"] == 1
        assert status["cor"]["fresh"] is True
        assert status["tipo"]["entries"] == 0
        assert status["tipo"]["age_seconds"] is None

    @pytest.mark.asyncio
    async def test_known_entries_merge_cache_over_dictionary(self, resolver, fake_client):
        fake_client.responses[AttributeClass.CERTIF] = {"S": "Standard", "Z": "Zero"}
        await resolver.preload([AttributeClass.CERTIF])

        entries = {e.code: e.description for e in resolver.known_entries(AttributeClass.CERTIF)}

        assert entries["S"] == "Standard"
        assert entries["Z"] == "Zero"
        assert entries["P"] == "Premium"

    @pytest.mark.asyncio
    async def test_aclose_closes_client(self, resolver, fake_client):
        await resolver.aclose()

        assert fake_client.closed is True
