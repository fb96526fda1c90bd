"""Tests for the catalog snapshot lookups and the TTL-cached index."""

import asyncio

import pytest

from salesflow.conversation.catalog_index import (
    CatalogIndex,
    CatalogSnapshot,
    CatalogUnavailableError,
)
from salesflow.conversation.state_machine import FlowName
from salesflow.tools.catalog_store import InMemoryCatalogStore
from tests.conftest import TickClock, make_entry


class TestFlowOwnership:
    def test_size_resolution_is_orientation_insensitive(self, snapshot):
        assert snapshot.resolve_flow(4, 5) == FlowName.MALLA_SOMBRA
        assert snapshot.resolve_flow(5, 4) == FlowName.MALLA_SOMBRA

    def test_shared_size_uses_specificity_order(self, snapshot):
        # 2.10x100 is sold as ground cover and as a roll
        assert snapshot.flows_for_size(2.1, 100) == {FlowName.GROUNDCOVER, FlowName.ROLLO}
        assert snapshot.resolve_flow(100, 2.1) == FlowName.GROUNDCOVER

    def test_unclaimed_size(self, snapshot):
        assert snapshot.resolve_flow(7, 9) is None

    def test_inactive_entry_claims_nothing(self, snapshot):
        assert snapshot.resolve_flow(2, 2) is None

    def test_classify_by_ancestor_chain(self, snapshot):
        assert snapshot.classify("ms90_4x5") == FlowName.MALLA_SOMBRA
        assert snapshot.classify("rollo_90_420") == FlowName.ROLLO
        assert snapshot.classify("gc_105") == FlowName.GROUNDCOVER
        assert snapshot.classify("mono_4_35") == FlowName.MONOFILAMENTO
        assert snapshot.classify("borde_caja_18") == FlowName.BORDE_SEPARADOR

    def test_antimaleza_is_not_malla_sombra(self):
        snap = CatalogSnapshot([make_entry("x", name="Malla antimaleza 2x2", size="2x2")])
        assert snap.classify("x") == FlowName.GROUNDCOVER


class TestTree:
    def test_effective_aliases_include_ancestors(self, snapshot):
        aliases = snapshot.effective_aliases("ms90_4x5")
        assert "raschel 90" in aliases
        assert "malla sombra" in aliases

    def test_find_by_alias_skips_inactive(self, snapshot):
        ids = {e.id for e in snapshot.find_by_alias("confeccionada")}
        assert "ms90_4x5" in ids
        assert "ms90_2x2" not in ids

    def test_cycle_terminates(self):
        snap = CatalogSnapshot([
            make_entry("a", parent_id="b", sellable=False),
            make_entry("b", parent_id="a", sellable=False),
        ])
        assert [e.id for e in snap.ancestors("a")] == ["b"]


class TestProductLookup:
    def test_exact_rectangle(self, snapshot):
        assert snapshot.find_product(FlowName.MALLA_SOMBRA, width=5, height=4).id == "ms90_4x5"

    def test_roll_by_width_and_percentage(self, snapshot):
        entry = snapshot.find_product(FlowName.ROLLO, width=4.2, length=100, percentage=80)
        assert entry.id == "rollo_80_420"

    def test_retail_preferred_over_wholesale_only(self, snapshot):
        assert snapshot.find_product(FlowName.BORDE_SEPARADOR, length=18).id == "borde_18"

    def test_no_match(self, snapshot):
        assert snapshot.find_product(FlowName.MALLA_SOMBRA, width=7, height=9) is None

    def test_closest_sizes_prefer_covering_entries(self, snapshot):
        ids = [e.id for e in snapshot.closest_sizes(FlowName.MALLA_SOMBRA, 3.5, 4.5)]
        assert ids == ["ms90_4x5", "ms90_4x6", "ms90_6x8"]

    def test_family_variants(self, snapshot):
        assert snapshot.family_variants(FlowName.BORDE_SEPARADOR) == (True, True)
        assert snapshot.family_variants(FlowName.MONOFILAMENTO) == (False, True)
        assert snapshot.family_variants(FlowName.MALLA_SOMBRA) == (True, False)

    def test_use_cases_sorted_by_priority(self, snapshot):
        priorities = [u.priority for u in snapshot.use_cases]
        assert priorities == sorted(priorities, reverse=True)


class TestCatalogIndexCache:
    @pytest.mark.asyncio
    async def test_fresh_snapshot_is_reused(self):
        store = InMemoryCatalogStore()
        index = CatalogIndex(store, ttl_seconds=60, clock=TickClock())
        first = await index.get()
        second = await index.get()
        assert first is second
        assert index.rebuild_count == 1
        assert store.query_count == 1

    @pytest.mark.asyncio
    async def test_rebuild_after_ttl(self):
        clock = TickClock()
        index = CatalogIndex(InMemoryCatalogStore(), ttl_seconds=60, clock=clock)
        await index.get()
        clock.value += 61
        await index.get()
        assert index.rebuild_count == 2

    @pytest.mark.asyncio
    async def test_invalidate_forces_rebuild_and_swaps_atomically(self):
        store = InMemoryCatalogStore()
        index = CatalogIndex(store, ttl_seconds=60, clock=TickClock())
        before = await index.get()
        store.upsert(make_entry("ms90_5x5", parent_id="ms_90", size="5x5", price=800))
        index.invalidate()
        after = await index.get()
        assert after.entry("ms90_5x5") is not None
        assert before.entry("ms90_5x5") is None
        assert after.resolve_flow(5, 5) == FlowName.MALLA_SOMBRA

    @pytest.mark.asyncio
    async def test_stale_snapshot_served_when_store_fails(self):
        store = InMemoryCatalogStore()
        index = CatalogIndex(store, ttl_seconds=60, clock=TickClock())
        before = await index.get()
        store.fail = True
        index.invalidate()
        assert await index.get() is before

    @pytest.mark.asyncio
    async def test_unavailable_without_previous_snapshot(self):
        store = InMemoryCatalogStore()
        store.fail = True
        index = CatalogIndex(store, ttl_seconds=60, clock=TickClock())
        with pytest.raises(CatalogUnavailableError):
            await index.get()

    @pytest.mark.asyncio
    async def test_concurrent_rebuilds_are_coalesced(self):
        index = CatalogIndex(InMemoryCatalogStore(), ttl_seconds=60, clock=TickClock())
        results = await asyncio.gather(index.get(), index.get(), index.get())
        assert index.rebuild_count == 1
        assert results[0] is results[1] is results[2]

    @pytest.mark.asyncio
    async def test_resolve_flow_through_index(self):
        index = CatalogIndex(InMemoryCatalogStore(), ttl_seconds=60, clock=TickClock())
        assert await index.resolve_flow(6, 8) == FlowName.MALLA_SOMBRA
