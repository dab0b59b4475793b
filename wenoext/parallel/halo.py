"""
Halo data collection for partitioned meshes.

Stencils of cells near a partition boundary reference cells owned by
neighbouring partitions. Their values are fetched in two phases:

1. ``HaloGatherer.collect_requests`` batches every halo member of every
   usable stencil into one ``HaloRequestSet`` (per partition, sorted unique
   remote cell ids). The catalog is frozen, so this happens once.
2. ``HaloGatherer.gather`` performs exactly one ``HaloTransport.exchange``
   per reconstruction pass and freezes the replies into a ``HaloValueCache``.

Exchange rounds are serialized process-wide, so two passes running
concurrently never interleave their synchronization rounds.
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, NamedTuple, Protocol, runtime_checkable

import numpy as np

from wenoext.utils.exceptions import HaloResolutionError
from wenoext.utils.weno_logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Mapping

    from numpy.typing import ArrayLike, NDArray

    from wenoext.core.stencil_catalog import StencilCatalog

logger = get_logger(__name__)


class HaloReply(NamedTuple):
    """Values (and optionally centers) of the requested cells of one partition."""

    values: NDArray[np.float64]
    centers: NDArray[np.float64] | None = None


@runtime_checkable
class HaloTransport(Protocol):
    """
    Cross-partition exchange used by ``HaloGatherer``.

    ``exchange`` may be a blocking collective: every partition calls it once
    per pass with the cells it needs from each neighbour and its own local
    values, and receives the requested values back.

    Required method:
        exchange(requests, values, centers, tag) -> {proc: HaloReply}

    ``requests`` maps partition -> sorted remote cell ids; ``values`` is the
    local field as (n_cells, n_components); ``centers`` the local cell
    centers or None; ``tag`` identifies the pass. Each reply must hold one
    row per requested cell, in request order.
    """

    def exchange(
        self,
        requests: Mapping[int, NDArray[np.int64]],
        values: NDArray[np.float64],
        centers: NDArray[np.float64] | None,
        tag: int,
    ) -> Mapping[int, HaloReply]: ...


@dataclass(frozen=True, eq=False)
class HaloRequestSet:
    """
    Batched halo requests of a whole catalog.

    Attributes
    ----------
    cells : dict[int, NDArray]
        Partition -> sorted unique remote cell ids
    offsets : dict[int, int]
        Partition -> first row of its reply in the stacked halo buffer
    member_rows : dict[tuple[int, int], tuple[NDArray, NDArray]]
        (cell, stencil) -> (member slots within the stencil, rows in the
        stacked buffer)
    """

    cells: dict[int, NDArray[np.int64]]
    offsets: dict[int, int]
    member_rows: dict[tuple[int, int], tuple[NDArray[np.int64], NDArray[np.int64]]] = field(repr=False)

    @property
    def procs(self) -> tuple[int, ...]:
        return tuple(self.cells)

    @property
    def n_requests(self) -> int:
        return sum(len(c) for c in self.cells.values())

    def __bool__(self) -> bool:
        return self.n_requests > 0

    def row_of(self, proc: int, index: int) -> int:
        """Row of remote cell ``index`` of partition ``proc`` in the stacked buffer."""
        cells = self.cells.get(proc)
        if cells is not None:
            pos = int(np.searchsorted(cells, index))
            if pos < len(cells) and cells[pos] == index:
                return self.offsets[proc] + pos
        raise KeyError(f"Halo cell {index} of partition {proc} was not requested")


class HaloValueCache:
    """
    Halo values of one reconstruction pass, read-only once built.

    Rows of the stacked buffers follow ``HaloRequestSet.offsets``.
    """

    def __init__(
        self,
        requests: HaloRequestSet,
        values: NDArray[np.float64],
        centers: NDArray[np.float64] | None = None,
        tag: int = 0,
    ):
        self.requests = requests
        self.tag = tag
        self._values = np.array(values, dtype=np.float64, copy=True)
        self._values.flags.writeable = False
        if centers is not None:
            self._centers = np.array(centers, dtype=np.float64, copy=True)
            self._centers.flags.writeable = False
        else:
            self._centers = None

    @classmethod
    def empty(cls, requests: HaloRequestSet, n_components: int) -> HaloValueCache:
        return cls(requests, np.zeros((0, n_components)))

    @property
    def n_components(self) -> int:
        return self._values.shape[1]

    @property
    def has_centers(self) -> bool:
        return self._centers is not None

    @property
    def exchanged(self) -> bool:
        """Whether the values came from a transport exchange (tags start at 1)."""
        return self.tag > 0

    def __len__(self) -> int:
        return self._values.shape[0]

    def value(self, proc: int, index: int) -> NDArray[np.float64]:
        """Components of one halo cell."""
        return self._values[self.requests.row_of(proc, index)]

    def center(self, proc: int, index: int) -> NDArray[np.float64]:
        if self._centers is None:
            raise HaloResolutionError("Halo centers were not gathered in this pass", partition=proc)
        return self._centers[self.requests.row_of(proc, index)]

    def member_values(self, cell: int, stencil: int) -> tuple[NDArray[np.int64], NDArray[np.float64]]:
        """
        Halo values of one stencil.

        Returns
        -------
        slots : NDArray
            Positions of the halo members within the stencil
        values : NDArray
            Their values, shape (len(slots), n_components)
        """
        entry = self.requests.member_rows.get((cell, stencil))
        if entry is None:
            return np.zeros(0, dtype=np.int64), self._values[:0]
        slots, rows = entry
        return slots, self._values[rows]

    def member_centers(self, cell: int, stencil: int) -> tuple[NDArray[np.int64], NDArray[np.float64]]:
        if self._centers is None:
            raise HaloResolutionError("Halo centers were not gathered in this pass", cell=cell, stencil=stencil)
        entry = self.requests.member_rows.get((cell, stencil))
        if entry is None:
            return np.zeros(0, dtype=np.int64), self._centers[:0]
        slots, rows = entry
        return slots, self._centers[rows]


class HaloGatherer:
    """
    Resolves the halo members of a stencil catalog once per reconstruction pass.

    Parameters
    ----------
    catalog : StencilCatalog
        Frozen stencil catalog
    transport : HaloTransport | None
        Cross-partition exchange; may be None for catalogs without halo
        members

    Examples
    --------
    >>> gatherer = HaloGatherer(catalog, transport)
    >>> requests = gatherer.collect_requests()   # phase 1, cached
    >>> cache = gatherer.gather(components)      # phase 2, one exchange
    """

    _exchange_lock = threading.Lock()
    _tags = itertools.count(1)

    def __init__(self, catalog: StencilCatalog, transport: HaloTransport | None = None):
        if transport is not None and not isinstance(transport, HaloTransport):
            raise TypeError(f"transport must implement HaloTransport.exchange, got {type(transport).__name__}")
        self.catalog = catalog
        self.transport = transport
        self._requests: HaloRequestSet | None = None
        self._requests_lock = threading.Lock()
        self.rounds = 0

    def collect_requests(self) -> HaloRequestSet:
        """Batch every halo member of the catalog into one request set."""
        if self._requests is not None:
            return self._requests

        with self._requests_lock:
            if self._requests is None:
                self._requests = self._build_requests()
        return self._requests

    def _build_requests(self) -> HaloRequestSet:
        refs = list(self.catalog.halo_members())

        wanted: dict[int, set[int]] = {}
        for ref in refs:
            wanted.setdefault(self.catalog.proc_of(ref.member), set()).add(ref.member.index)

        cells: dict[int, NDArray[np.int64]] = {}
        offsets: dict[int, int] = {}
        offset = 0
        for proc in sorted(wanted):
            ids = np.array(sorted(wanted[proc]), dtype=np.int64)
            ids.flags.writeable = False
            cells[proc] = ids
            offsets[proc] = offset
            offset += len(ids)

        grouped: dict[tuple[int, int], tuple[list[int], list[int]]] = {}
        for ref in refs:
            proc = self.catalog.proc_of(ref.member)
            row = offsets[proc] + int(np.searchsorted(cells[proc], ref.member.index))
            slots, rows = grouped.setdefault((ref.cell, ref.stencil), ([], []))
            slots.append(ref.slot)
            rows.append(row)

        member_rows = {
            key: (np.array(slots, dtype=np.int64), np.array(rows, dtype=np.int64))
            for key, (slots, rows) in grouped.items()
        }

        request_set = HaloRequestSet(cells=cells, offsets=offsets, member_rows=member_rows)
        logger.debug(
            f"HaloGatherer: {request_set.n_requests} halo cells from {len(cells)} partitions "
            f"({len(refs)} stencil references)"
        )
        return request_set

    def gather(self, values: ArrayLike, centers: ArrayLike | None = None) -> HaloValueCache:
        """
        Run the single exchange of a pass and freeze its result.

        Parameters
        ----------
        values : ArrayLike
            Local field as (n_cells, n_components)
        centers : ArrayLike | None
            Local cell centers (n_cells, 3) when halo centers are needed

        Raises
        ------
        HaloResolutionError
            No transport for a catalog with halo members, or a partition or
            cell the transport could not deliver
        """
        values = np.asarray(values, dtype=np.float64)
        if values.ndim != 2:
            values = values.reshape(values.shape[0], -1)
        centers_arr = None if centers is None else np.asarray(centers, dtype=np.float64)
        requests = self.collect_requests()

        if not requests:
            return HaloValueCache.empty(requests, values.shape[1])

        if self.transport is None:
            raise HaloResolutionError(
                "Stencils reference halo cells but no halo transport was provided",
                partition=requests.procs[0],
            )

        with self._exchange_lock:
            tag = next(self._tags)
            replies = self.transport.exchange(requests.cells, values, centers_arr, tag)
            self.rounds += 1

        n_comp = values.shape[1]
        stacked = np.empty((requests.n_requests, n_comp))
        stacked_centers = np.empty((requests.n_requests, 3)) if centers_arr is not None else None

        for proc, ids in requests.cells.items():
            reply = replies.get(proc) if replies is not None else None
            if reply is None:
                raise HaloResolutionError(
                    f"Partition {proc} did not answer the halo exchange", partition=proc, remote_cells=ids.tolist()
                )
            reply_values = np.asarray(reply.values, dtype=np.float64)
            if reply_values.size != len(ids) * n_comp or reply_values.shape[:1] != (len(ids),):
                raise HaloResolutionError(
                    f"Partition {proc} returned {np.shape(reply.values)} values for {len(ids)} cells "
                    f"with {n_comp} components",
                    partition=proc,
                    remote_cells=ids.tolist(),
                )
            start = requests.offsets[proc]
            stacked[start : start + len(ids)] = reply_values.reshape(len(ids), n_comp)

            if stacked_centers is not None:
                if reply.centers is None or np.shape(reply.centers) != (len(ids), 3):
                    raise HaloResolutionError(
                        f"Partition {proc} did not return centers for the requested cells",
                        partition=proc,
                        remote_cells=ids.tolist(),
                    )
                stacked_centers[start : start + len(ids)] = reply.centers

        logger.debug(f"Halo exchange {tag}: {requests.n_requests} values from {len(requests.cells)} partitions")
        return HaloValueCache(requests, stacked, stacked_centers, tag=tag)


class InMemoryTransport:
    """
    Transport serving remote partitions from in-process arrays.

    Stands in for the collective exchange of a distributed run: every remote
    partition's current field is registered with ``update`` before a pass.
    Counts exchange rounds and records their tags.

    Parameters
    ----------
    remote_values : Mapping[int, ArrayLike] | None
        Partition -> field on that partition, (n_cells,) or (n_cells, ...)
    remote_centers : Mapping[int, ArrayLike] | None
        Partition -> cell centers on that partition, (n_cells, 3)
    """

    def __init__(
        self,
        remote_values: Mapping[int, ArrayLike] | None = None,
        remote_centers: Mapping[int, ArrayLike] | None = None,
    ):
        self._values: dict[int, NDArray[np.float64]] = {}
        self._centers: dict[int, NDArray[np.float64]] = {}
        for proc, vals in (remote_values or {}).items():
            self.update(proc, vals, (remote_centers or {}).get(proc))
        self.rounds = 0
        self.tags: list[int] = []

    def update(self, proc: int, values: ArrayLike, centers: ArrayLike | None = None) -> None:
        arr = np.asarray(values, dtype=np.float64)
        self._values[int(proc)] = arr.reshape(arr.shape[0], -1)
        if centers is not None:
            self._centers[int(proc)] = np.asarray(centers, dtype=np.float64)

    def exchange(
        self,
        requests: Mapping[int, NDArray[np.int64]],
        values: NDArray[np.float64],
        centers: NDArray[np.float64] | None,
        tag: int,
    ) -> dict[int, HaloReply]:
        self.rounds += 1
        self.tags.append(tag)

        replies: dict[int, HaloReply] = {}
        for proc, ids in requests.items():
            remote = self._values.get(proc)
            if remote is None:
                raise HaloResolutionError(
                    f"Partition {proc} is not reachable", partition=proc, remote_cells=list(ids)
                )
            ids = np.asarray(ids, dtype=np.int64)
            bad = ids[(ids < 0) | (ids >= remote.shape[0])]
            if bad.size:
                raise HaloResolutionError(
                    f"Partition {proc} has no cells {bad.tolist()}", partition=proc, remote_cells=bad.tolist()
                )
            remote_centers = self._centers.get(proc)
            replies[proc] = HaloReply(
                values=remote[ids],
                centers=remote_centers[ids] if (centers is not None and remote_centers is not None) else None,
            )
        return replies
