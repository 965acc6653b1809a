"""Tests for cache-backed resolution with provider fallback."""

from datetime import datetime, timedelta

import pytest

from cnpj_pull.models import ResolvedEntity
from cnpj_pull.models.database import DBRegistryCache
from cnpj_pull.registry import MockRegistryProvider, RegistryResolver


def make_entity(cnpj="11222333000181", **kwargs) -> ResolvedEntity:
    """Create test entity with defaults."""
    defaults = {"legal_name": "Teste Ltda", "status": "ATIVA", "source": "test"}
    defaults.update(kwargs)
    return ResolvedEntity(cnpj=cnpj, **defaults)


class TestRegistryResolver:
    """Tests for the resolve contract."""

    @pytest.mark.asyncio
    async def test_primary_success(self, cache):
        primary = MockRegistryProvider([make_entity()], name="primary")
        secondary = MockRegistryProvider([make_entity()], name="secondary")
        resolver = RegistryResolver([primary, secondary], cache)

        entity = await resolver.resolve("11.222.333/0001-81")
        assert entity.source == "primary"
        assert secondary.calls == []

    @pytest.mark.asyncio
    async def test_fallback_on_primary_failure(self, cache):
        primary = MockRegistryProvider([], failing={"11222333000181"}, name="primary")
        secondary = MockRegistryProvider([make_entity()], name="secondary")
        resolver = RegistryResolver([primary, secondary], cache)

        entity = await resolver.resolve("11222333000181")
        assert entity.source == "secondary"
        entry = await cache.get_entry("11222333000181")
        assert entry.source == "secondary"

    @pytest.mark.asyncio
    async def test_fallback_on_primary_timeout(self, cache):
        primary = MockRegistryProvider([make_entity()], delay=0.5, timeout=0.05, name="primary")
        secondary = MockRegistryProvider([make_entity()], name="secondary")
        resolver = RegistryResolver([primary, secondary], cache)

        entity = await resolver.resolve("11222333000181")
        assert entity.source == "secondary"

    @pytest.mark.asyncio
    async def test_fallback_then_cache_hit(self, cache):
        primary = MockRegistryProvider([], failing={"11222333000181"}, name="primary")
        secondary = MockRegistryProvider([make_entity()], name="secondary")
        resolver = RegistryResolver([primary, secondary], cache)

        first = await resolver.lookup("11222333000181")
        assert not first.from_cache
        second = await resolver.lookup("11222333000181")
        assert second.from_cache
        assert second.entity == first.entity
        assert primary.calls == ["11222333000181"]
        assert secondary.calls == ["11222333000181"]

        await cache.drain()
        entry = await cache.get_entry("11222333000181")
        assert entry.hit_count == 1

    @pytest.mark.asyncio
    async def test_all_providers_fail(self, cache):
        primary = MockRegistryProvider([], failing={"11222333000181"})
        secondary = MockRegistryProvider([])
        resolver = RegistryResolver([primary, secondary], cache)

        assert await resolver.resolve("11222333000181") is None
        assert await cache.get_entry("11222333000181") is None

    @pytest.mark.asyncio
    async def test_resolve_batch_coalesces_writes(self, cache):
        entities = [make_entity("11222333000181"), make_entity("00000000000191", status="BAIXADA")]
        provider = MockRegistryProvider(entities)
        resolver = RegistryResolver([provider], cache)

        resolutions = await resolver.resolve_batch(["11222333000181", "00000000000191", "22444666000155"])
        assert [r.resolved for r in resolutions] == [True, True, False]
        assert (await cache.get_entry("00000000000191")).status == "BAIXADA"

    @pytest.mark.asyncio
    async def test_unreadable_cache_row_falls_back_to_provider(self, cache, session_factory):
        now = datetime.utcnow()
        with session_factory() as session:
            session.add(DBRegistryCache(
                cnpj="11222333000181",
                payload='{"cnpj": "11222333000181"}',
                status="ATIVA",
                source="other",
                fetched_at=now,
                expires_at=now + timedelta(days=1),
                hit_count=0,
            ))
            session.commit()

        provider = MockRegistryProvider([make_entity()], name="primary")
        resolver = RegistryResolver([provider], cache)

        entity = await resolver.resolve("11222333000181")
        assert entity.source == "primary"
        assert provider.calls == ["11222333000181"]

        entry = await cache.get_entry("11222333000181")
        assert entry.entity.legal_name == "Teste Ltda"
