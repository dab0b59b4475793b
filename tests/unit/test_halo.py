"""
Unit tests for halo data collection.

Tests cover:
- Batched request collection (sorted, unique, cached)
- One exchange per gather, none for catalogs without halo members
- Reply validation and unreachable partitions
- The frozen halo value cache
"""

from __future__ import annotations

import threading

import pytest

import numpy as np

from wenoext.parallel.halo import HaloGatherer, HaloReply, HaloTransport, HaloValueCache, InMemoryTransport
from wenoext.utils.exceptions import HaloResolutionError, StencilSetupError


@pytest.fixture
def field(partitioned_grid, quadratic):
    return quadratic(partitioned_grid.centers)


@pytest.fixture
def transport(partitioned_grid, field):
    return InMemoryTransport(
        {1: partitioned_grid.remote_part(field)},
        {1: partitioned_grid.centers[partitioned_grid.remote]},
    )


class TestRequests:
    def test_requests_are_sorted_and_unique(self, partitioned_grid):
        requests = HaloGatherer(partitioned_grid.catalog).collect_requests()
        assert requests.procs == (1,)
        ids = requests.cells[1]
        assert np.all(np.diff(ids) > 0)
        # columns x = 3 and x = 4 are within two cells of the partition boundary
        assert len(ids) == 12
        assert requests.n_requests == 12
        assert requests.offsets == {1: 0}

    def test_requests_are_cached(self, partitioned_grid):
        gatherer = HaloGatherer(partitioned_grid.catalog)
        assert gatherer.collect_requests() is gatherer.collect_requests()

    def test_no_requests_without_halo(self, small_grid):
        requests = HaloGatherer(small_grid.catalog).collect_requests()
        assert not requests
        assert requests.n_requests == 0

    def test_member_rows_cover_every_halo_member(self, partitioned_grid):
        catalog = partitioned_grid.catalog
        requests = HaloGatherer(catalog).collect_requests()
        for ref in catalog.halo_members():
            slots, rows = requests.member_rows[(ref.cell, ref.stencil)]
            position = list(slots).index(ref.slot)
            assert rows[position] == requests.row_of(1, ref.member.index)

    def test_row_of_unknown_cell(self, partitioned_grid):
        requests = HaloGatherer(partitioned_grid.catalog).collect_requests()
        with pytest.raises(KeyError):
            requests.row_of(1, 17)
        with pytest.raises(KeyError):
            requests.row_of(5, 0)


class TestGather:
    def test_single_exchange_per_gather(self, partitioned_grid, field, transport):
        gatherer = HaloGatherer(partitioned_grid.catalog, transport)
        local = partitioned_grid.local(field)[:, None]

        gatherer.gather(local)
        assert transport.rounds == 1
        assert gatherer.rounds == 1

        gatherer.gather(local)
        assert transport.rounds == 2
        assert transport.tags[1] > transport.tags[0]

    def test_gathered_values(self, partitioned_grid, field, transport):
        gatherer = HaloGatherer(partitioned_grid.catalog, transport)
        cache = gatherer.gather(partitioned_grid.local(field)[:, None])
        remote_ids = gatherer.collect_requests().cells[1]
        for rid in remote_ids:
            expected = field[partitioned_grid.remote[rid]]
            assert cache.value(1, rid)[0] == pytest.approx(expected)
        assert len(cache) == len(remote_ids)
        assert cache.n_components == 1

    def test_gathered_centers(self, partitioned_grid, field, transport):
        gatherer = HaloGatherer(partitioned_grid.catalog, transport)
        local_centers = partitioned_grid.centers[partitioned_grid.owned]
        cache = gatherer.gather(partitioned_grid.local(field)[:, None], local_centers)
        assert cache.has_centers
        rid = int(gatherer.collect_requests().cells[1][0])
        np.testing.assert_array_equal(cache.center(1, rid), partitioned_grid.centers[partitioned_grid.remote[rid]])

    def test_member_centers(self, partitioned_grid, field, transport):
        catalog = partitioned_grid.catalog
        gatherer = HaloGatherer(catalog, transport)
        local_centers = partitioned_grid.centers[partitioned_grid.owned]
        cache = gatherer.gather(partitioned_grid.local(field)[:, None], local_centers)

        ref = next(catalog.halo_members())
        slots, centers = cache.member_centers(ref.cell, ref.stencil)
        members = catalog.stencil(ref.cell, ref.stencil).members
        assert centers.shape == (len(slots), 3)
        for slot, center in zip(slots, centers):
            remote_id = partitioned_grid.remote[members[slot].index]
            np.testing.assert_array_equal(center, partitioned_grid.centers[remote_id])

        # cell 0 sits at x = 0, two columns away from partition 1
        slots, centers = cache.member_centers(0, 0)
        assert len(slots) == 0
        assert centers.shape == (0, 3)

    def test_member_centers_not_gathered(self, partitioned_grid, field, transport):
        cache = HaloGatherer(partitioned_grid.catalog, transport).gather(partitioned_grid.local(field)[:, None])
        ref = next(partitioned_grid.catalog.halo_members())
        assert not cache.has_centers
        with pytest.raises(HaloResolutionError):
            cache.member_centers(ref.cell, ref.stencil)

    def test_cache_records_its_exchange(self, partitioned_grid, small_grid, field, transport, quadratic):
        cache = HaloGatherer(partitioned_grid.catalog, transport).gather(partitioned_grid.local(field)[:, None])
        assert cache.exchanged
        local = HaloGatherer(small_grid.catalog).gather(quadratic(small_grid.centers)[:, None])
        assert not local.exchanged

    def test_cache_is_read_only(self, partitioned_grid, field, transport):
        cache = HaloGatherer(partitioned_grid.catalog, transport).gather(partitioned_grid.local(field)[:, None])
        ref = next(partitioned_grid.catalog.halo_members())
        slots, values = cache.member_values(ref.cell, ref.stencil)
        assert len(slots) == len(values)
        row = cache.value(1, ref.member.index)
        with pytest.raises(ValueError):
            row[0] = 1.0

    def test_no_exchange_without_halo(self, small_grid, quadratic):
        transport = InMemoryTransport()
        gatherer = HaloGatherer(small_grid.catalog, transport)
        cache = gatherer.gather(quadratic(small_grid.centers)[:, None])
        assert transport.rounds == 0
        assert gatherer.rounds == 0
        assert len(cache) == 0

    def test_missing_transport(self, partitioned_grid, field):
        gatherer = HaloGatherer(partitioned_grid.catalog)
        with pytest.raises(HaloResolutionError) as exc_info:
            gatherer.gather(partitioned_grid.local(field)[:, None])
        assert exc_info.value.partition == 1

    def test_unreachable_partition(self, partitioned_grid, field):
        gatherer = HaloGatherer(partitioned_grid.catalog, InMemoryTransport())
        with pytest.raises(HaloResolutionError, match="not reachable") as exc_info:
            gatherer.gather(partitioned_grid.local(field)[:, None])
        assert isinstance(exc_info.value, StencilSetupError)
        assert exc_info.value.error_code == "HALO_UNREACHABLE"

    def test_stale_partition_map(self, partitioned_grid, field):
        # remote partition shrank below the requested ids
        transport = InMemoryTransport({1: np.zeros(3)})
        with pytest.raises(HaloResolutionError, match="has no cells"):
            HaloGatherer(partitioned_grid.catalog, transport).gather(partitioned_grid.local(field)[:, None])

    def test_short_reply(self, partitioned_grid, field):
        class ShortTransport:
            def exchange(self, requests, values, centers, tag):
                return {proc: HaloReply(np.zeros(len(ids) - 1)) for proc, ids in requests.items()}

        with pytest.raises(HaloResolutionError, match="returned"):
            HaloGatherer(partitioned_grid.catalog, ShortTransport()).gather(partitioned_grid.local(field)[:, None])

    def test_missing_reply(self, partitioned_grid, field):
        class SilentTransport:
            def exchange(self, requests, values, centers, tag):
                return {}

        with pytest.raises(HaloResolutionError, match="did not answer"):
            HaloGatherer(partitioned_grid.catalog, SilentTransport()).gather(partitioned_grid.local(field)[:, None])

    def test_missing_centers(self, partitioned_grid, field):
        transport = InMemoryTransport({1: partitioned_grid.remote_part(field)})
        local_centers = partitioned_grid.centers[partitioned_grid.owned]
        with pytest.raises(HaloResolutionError, match="centers"):
            HaloGatherer(partitioned_grid.catalog, transport).gather(
                partitioned_grid.local(field)[:, None], local_centers
            )

    def test_invalid_transport(self, partitioned_grid):
        with pytest.raises(TypeError):
            HaloGatherer(partitioned_grid.catalog, object())

    def test_transport_protocol(self):
        assert isinstance(InMemoryTransport(), HaloTransport)

    def test_concurrent_gathers_never_overlap(self, partitioned_grid, field):
        active = []
        overlaps = []
        guard = threading.Lock()

        class TrackingTransport(InMemoryTransport):
            def exchange(self, requests, values, centers, tag):
                with guard:
                    active.append(tag)
                    if len(active) > 1:
                        overlaps.append(tag)
                try:
                    return super().exchange(requests, values, centers, tag)
                finally:
                    with guard:
                        active.remove(tag)

        transport = TrackingTransport({1: partitioned_grid.remote_part(field)})
        gatherers = [HaloGatherer(partitioned_grid.catalog, transport) for _ in range(4)]
        local = partitioned_grid.local(field)[:, None]

        threads = [threading.Thread(target=g.gather, args=(local,)) for g in gatherers for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert overlaps == []
        assert transport.rounds == 20
        assert len(set(transport.tags)) == 20


class TestValueCache:
    def test_center_without_centers(self, partitioned_grid, field, transport):
        cache = HaloGatherer(partitioned_grid.catalog, transport).gather(partitioned_grid.local(field)[:, None])
        with pytest.raises(HaloResolutionError):
            cache.center(1, int(cache.requests.cells[1][0]))

    def test_member_values_of_local_stencil(self, partitioned_grid, field, transport):
        cache = HaloGatherer(partitioned_grid.catalog, transport).gather(partitioned_grid.local(field)[:, None])
        # cell 0 (global (0, 0)) only reaches x <= 2
        slots, values = cache.member_values(0, 0)
        assert len(slots) == 0
        assert values.shape == (0, 1)

    def test_empty_cache(self, small_grid):
        requests = HaloGatherer(small_grid.catalog).collect_requests()
        cache = HaloValueCache.empty(requests, 3)
        assert cache.n_components == 3
        assert len(cache) == 0
