"""
Uniform-grid spatial hashes for nodes and element segments.

Both indexes are built fresh from the current model state and are
over-approximate: queries return every item sharing a grid cell with
the query box, and callers apply their own exact filters.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set, Tuple

import numpy as np

from framemesh.core.constants import MAX_CELLS_PER_ELEMENT, MIN_ELEMENT_CELL_SIZE, MIN_GRID_CELL_SIZE
from framemesh.fem.fem_model import FEModelContext
from framemesh.fem.geometry import BoundingBox

logger = logging.getLogger(__name__)

CellKey = Tuple[int, int, int]


def _cell_range(bbox: BoundingBox, cell: float) -> Tuple[np.ndarray, np.ndarray]:
    lo = np.floor(np.array([bbox.min.x, bbox.min.y, bbox.min.z]) / cell).astype(np.int64)
    hi = np.floor(np.array([bbox.max.x, bbox.max.y, bbox.max.z]) / cell).astype(np.int64)
    return lo, hi


def _range_size(lo: np.ndarray, hi: np.ndarray) -> int:
    return int(np.prod(hi - lo + 1))


def _iter_cells(lo: np.ndarray, hi: np.ndarray) -> Iterable[CellKey]:
    for i in range(int(lo[0]), int(hi[0]) + 1):
        for j in range(int(lo[1]), int(hi[1]) + 1):
            for k in range(int(lo[2]), int(hi[2]) + 1):
                yield (i, j, k)


def _cells_in_range(buckets: Dict[CellKey, List[int]], lo: np.ndarray,
                    hi: np.ndarray) -> Iterable[CellKey]:
    """Occupied cells within [lo, hi], walking whichever side is smaller."""
    if _range_size(lo, hi) <= len(buckets):
        return (key for key in _iter_cells(lo, hi) if key in buckets)
    return (key for key in buckets
            if lo[0] <= key[0] <= hi[0] and lo[1] <= key[1] <= hi[1] and lo[2] <= key[2] <= hi[2])


def suggest_cell_size(context: FEModelContext, minimum: float = MIN_ELEMENT_CELL_SIZE) -> float:
    """Median element length, used when a caller has no better cell size."""
    lengths = [context.element_length(eid) for eid in context.elements.ids()
               if context.element_has_nodes(eid)]
    if not lengths:
        return minimum
    return max(minimum, float(np.median(lengths)))


class NodeSpatialHash:
    """Grid bucket index of node IDs.

    Args:
        context: Model whose nodes are indexed
        cell_size: Grid cell edge length (clamped to a tiny positive value)
    """

    def __init__(self, context: FEModelContext, cell_size: float):
        self.cell_size = max(float(cell_size), MIN_GRID_CELL_SIZE)
        self._buckets: Dict[CellKey, List[int]] = defaultdict(list)

        node_ids = context.nodes.ids()
        if not node_ids:
            return
        coords = np.array([context.nodes[n].as_tuple() for n in node_ids], dtype=float)
        keys = np.floor(coords / self.cell_size).astype(np.int64)
        for node_id, key in zip(node_ids, map(tuple, keys.tolist())):
            self._buckets[key].append(node_id)

    def __len__(self) -> int:
        return sum(len(b) for b in self._buckets.values())

    def query(self, bbox: BoundingBox) -> Set[int]:
        """Node IDs in every cell overlapped by bbox."""
        lo, hi = _cell_range(bbox, self.cell_size)
        found: Set[int] = set()
        for key in _cells_in_range(self._buckets, lo, hi):
            found.update(self._buckets[key])
        return found


class ElementSpatialHash:
    """Grid bucket index of element segments.

    Each element's endpoint bounding box, inflated by `inflate`, is
    registered in every covered cell. Elements covering more cells than
    MAX_CELLS_PER_ELEMENT are kept aside and returned by every query.

    Args:
        context: Model whose elements are indexed
        cell_size: Grid cell edge length
        inflate: Margin added to each element bounding box
        element_ids: Optional subset of elements to index
    """

    def __init__(self, context: FEModelContext, cell_size: float, inflate: float = 0.0,
                 element_ids: Optional[Iterable[int]] = None):
        self.cell_size = max(float(cell_size), MIN_GRID_CELL_SIZE)
        self.inflate = inflate
        self._buckets: Dict[CellKey, List[int]] = defaultdict(list)
        self._element_cells: Dict[int, List[CellKey]] = {}
        self._oversized: Set[int] = set()

        ids = context.elements.ids() if element_ids is None else sorted(element_ids)
        for eid in ids:
            if not context.element_has_nodes(eid):
                continue
            a, b = context.element_points(eid)
            lo, hi = _cell_range(BoundingBox.from_segment(a, b, inflate), self.cell_size)
            if _range_size(lo, hi) > MAX_CELLS_PER_ELEMENT:
                self._oversized.add(eid)
                continue
            cells = list(_iter_cells(lo, hi))
            self._element_cells[eid] = cells
            for key in cells:
                self._buckets[key].append(eid)
        if self._oversized:
            logger.debug(f"{len(self._oversized)} elements exceed the cell budget and are always candidates")

    def __contains__(self, element_id: int) -> bool:
        return element_id in self._element_cells or element_id in self._oversized

    def query_candidates(self, element_id: int) -> Set[int]:
        """Other indexed elements sharing a cell with element_id."""
        if element_id in self._oversized:
            found = set(self._element_cells)
            found.update(self._oversized)
        else:
            found = set(self._oversized)
            for key in self._element_cells.get(element_id, ()):
                found.update(self._buckets[key])
        found.discard(element_id)
        return found

    def query_box(self, bbox: BoundingBox) -> Set[int]:
        """Indexed elements sharing a cell with bbox."""
        lo, hi = _cell_range(bbox, self.cell_size)
        found = set(self._oversized)
        for key in _cells_in_range(self._buckets, lo, hi):
            found.update(self._buckets[key])
        return found
