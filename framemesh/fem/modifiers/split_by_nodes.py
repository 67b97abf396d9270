"""
Split elements at existing nodes lying on their span.

A node that sits within a small perpendicular distance of an element's
interior is a hidden junction: the element is rewritten as a chain
through every such node so that the junction is shared topologically.
The first fragment keeps the original element ID and metadata.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from framemesh.core.constants import (
    DEFAULT_GRID_CELL_SIZE,
    MERGE_TOL_ALONG,
    MIN_SEGMENT_LENGTH,
    PARAM_TOL,
)
from framemesh.fem.fem_model import FEModelContext
from framemesh.fem.geometry import BoundingBox, project_point_to_line
from framemesh.fem.spatial_hash import NodeSpatialHash

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SplitByNodesOptions:
    """Options for split-on-existing-node.

    Attributes:
        distance_tol: Maximum perpendicular distance of a node from the element line
        merge_tol_along: Hits closer than this along the axis collapse to one
        min_segment_length: Fragments shorter than this are dropped
        grid_cell_size: Node hash cell size
    """
    distance_tol: float = 0.5
    merge_tol_along: float = MERGE_TOL_ALONG
    min_segment_length: float = MIN_SEGMENT_LENGTH
    grid_cell_size: float = DEFAULT_GRID_CELL_SIZE

    def __post_init__(self):
        if self.distance_tol < 0:
            raise ValueError(f"distance_tol must be >= 0, got {self.distance_tol}")
        if self.grid_cell_size <= 0:
            raise ValueError(f"grid_cell_size must be positive, got {self.grid_cell_size}")


@dataclass
class SplitResult:
    """Counters reported by a split pass."""
    elements_scanned: int = 0
    elements_need_split: int = 0
    elements_split: int = 0
    elements_removed: int = 0
    elements_added: int = 0


def _collapse_hits(hits: List[Tuple[float, float, int]], merge_tol_along: float) -> List[int]:
    """Order hits along the axis, keeping the closest-to-line of near duplicates.

    Args:
        hits: (distance along axis, perpendicular distance, node ID)
    """
    kept: List[Tuple[float, float, int]] = []
    for hit in sorted(hits):
        if kept and hit[0] - kept[-1][0] < merge_tol_along:
            if hit[1] < kept[-1][1]:
                kept[-1] = hit
            continue
        kept.append(hit)
    return [node_id for _, _, node_id in kept]


def apply_element_splits(context: FEModelContext, plans: Dict[int, Sequence[int]],
                         min_segment_length: float = MIN_SEGMENT_LENGTH) -> SplitResult:
    """Rewrite each planned element as a chain through its split nodes.

    Split nodes are re-ordered along the element; endpoints and repeats
    are ignored. Links joining a node to itself or shorter than
    min_segment_length are dropped. An element left with no link is
    removed.

    Args:
        context: Model to modify
        plans: Element ID -> node IDs to insert
        min_segment_length: Shortest link kept

    Returns:
        SplitResult with split/removed/added counters filled in.
    """
    result = SplitResult(elements_need_split=len(plans))
    for eid in sorted(plans):
        element = context.elements.get(eid)
        if element is None or not context.element_has_nodes(eid):
            continue
        n1, n2 = element.node_ids
        a, b = context.element_points(eid)

        interior = []
        for node_id in dict.fromkeys(plans[eid]):
            if node_id in (n1, n2) or node_id not in context.nodes:
                continue
            proj = project_point_to_line(context.nodes[node_id], a, b)
            if proj is not None:
                interior.append((proj.t, node_id))
        if not interior:
            continue
        chain = [n1] + [node_id for _, node_id in sorted(interior)] + [n2]

        links = []
        for start, end in zip(chain, chain[1:]):
            if start == end:
                continue
            if context.nodes[start].distance_to(context.nodes[end]) < min_segment_length:
                continue
            links.append((start, end))

        if not links:
            context.elements.remove(eid)
            result.elements_removed += 1
            logger.debug(f"Element {eid} removed: no fragment longer than {min_segment_length}")
            continue

        first_start, first_end = links[0]
        context.elements.add_with_id(eid, first_start, first_end, element.property_id, element.meta)
        for start, end in links[1:]:
            context.elements.add_new(start, end, element.property_id, element.meta)
        result.elements_split += 1
        result.elements_added += len(links) - 1
    return result


def split_elements_by_existing_nodes(context: FEModelContext,
                                     options: Optional[SplitByNodesOptions] = None) -> SplitResult:
    """Split every element at existing nodes lying on its interior.

    Args:
        context: Model to modify in place
        options: Split tolerances

    Returns:
        SplitResult counters.
    """
    options = options or SplitByNodesOptions()
    node_hash = NodeSpatialHash(context, options.grid_cell_size)

    plans: Dict[int, List[int]] = {}
    scanned = 0
    for eid in context.elements.ids():
        if not context.element_has_nodes(eid):
            continue
        scanned += 1
        element = context.elements[eid]
        a, b = context.element_points(eid)
        length = a.distance_to(b)
        if length < options.min_segment_length:
            continue

        hits = []
        for node_id in node_hash.query(BoundingBox.from_segment(a, b, options.distance_tol)):
            if node_id in element.node_ids or node_id not in context.nodes:
                continue
            proj = project_point_to_line(context.nodes[node_id], a, b)
            if proj is None or proj.t <= PARAM_TOL or proj.t >= 1.0 - PARAM_TOL:
                continue
            if proj.distance > options.distance_tol:
                continue
            hits.append((proj.t * length, proj.distance, node_id))
        if hits:
            plans[eid] = _collapse_hits(hits, options.merge_tol_along)

    result = apply_element_splits(context, plans, options.min_segment_length)
    result.elements_scanned = scanned
    logger.info(
        f"Split by nodes: scanned={result.elements_scanned}, "
        f"need_split={result.elements_need_split}, split={result.elements_split}, "
        f"removed={result.elements_removed}, added={result.elements_added}"
    )
    return result
