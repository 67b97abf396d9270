"""
Split elements where they cross or touch other elements mid-span.

Two members that pass through each other without sharing a node are
joined at their closest approach: an existing endpoint is reused when
the junction is at the end of either member, otherwise a new node is
created halfway between the two closest points.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from framemesh.core.constants import MIN_SEGMENT_LENGTH, PARAM_TOL
from framemesh.fem.fem_model import FEModelContext
from framemesh.fem.geometry import closest_points_between_segments
from framemesh.fem.modifiers.split_by_nodes import SplitResult, apply_element_splits
from framemesh.fem.spatial_hash import ElementSpatialHash, suggest_cell_size

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IntersectionSplitOptions:
    """Options for split-on-intersection.

    Attributes:
        dist_tol: Maximum gap between two segments treated as a crossing
        end_tol: Length along a segment within which the junction snaps to its endpoint
        grid_cell_size: Element hash cell size (median element length if None)
    """
    dist_tol: float = 1.0
    end_tol: float = 1.0
    grid_cell_size: Optional[float] = None

    def __post_init__(self):
        if self.dist_tol < 0:
            raise ValueError(f"dist_tol must be >= 0, got {self.dist_tol}")
        if self.end_tol < 0:
            raise ValueError(f"end_tol must be >= 0, got {self.end_tol}")


@dataclass
class IntersectionSplitResult(SplitResult):
    """Split counters plus crossing statistics."""
    pairs_checked: int = 0
    crossings_found: int = 0
    nodes_created: int = 0


def _end_node(context: FEModelContext, eid: int, param: float, end_tol: float) -> Optional[int]:
    element = context.elements[eid]
    length = context.element_length(eid)
    if param * length <= end_tol or param <= PARAM_TOL:
        return element.start
    if (1.0 - param) * length <= end_tol or param >= 1.0 - PARAM_TOL:
        return element.end
    return None


def split_elements_at_intersections(context: FEModelContext,
                                    options: Optional[IntersectionSplitOptions] = None
                                    ) -> IntersectionSplitResult:
    """Join crossing elements by splitting them at a shared node.

    Args:
        context: Model to modify in place
        options: Crossing tolerances

    Returns:
        IntersectionSplitResult counters.
    """
    options = options or IntersectionSplitOptions()
    cell_size = options.grid_cell_size or suggest_cell_size(context)
    element_hash = ElementSpatialHash(context, cell_size, inflate=options.dist_tol)

    plans: Dict[int, List[int]] = {}
    pairs_checked = 0
    crossings = 0
    nodes_before = context.nodes.next_id
    scanned = len(context.elements)

    for eid in context.elements.ids():
        if not context.element_has_nodes(eid):
            continue
        for other in sorted(element_hash.query_candidates(eid)):
            if other <= eid or not context.element_has_nodes(other):
                continue
            first = context.elements[eid]
            second = context.elements[other]
            if set(first.node_ids) & set(second.node_ids):
                continue
            pairs_checked += 1

            a1, b1 = context.element_points(eid)
            a2, b2 = context.element_points(other)
            closest = closest_points_between_segments(a1, b1, a2, b2)
            if closest.parallel or closest.distance > options.dist_tol:
                continue

            end_first = _end_node(context, eid, closest.s, options.end_tol)
            end_second = _end_node(context, other, closest.t, options.end_tol)
            if end_first is not None and end_second is not None:
                # End-to-end contact is left to the node merge step
                continue

            if end_first is not None:
                junction = end_first
            elif end_second is not None:
                junction = end_second
            else:
                mid = (closest.point_a + closest.point_b) * 0.5
                junction = context.nodes.add_or_get(mid.x, mid.y, mid.z)

            crossings += 1
            if end_first is None:
                plans.setdefault(eid, []).append(junction)
            if end_second is None:
                plans.setdefault(other, []).append(junction)
            logger.debug(f"Elements {eid} and {other} cross at node {junction}")

    split = apply_element_splits(context, plans, MIN_SEGMENT_LENGTH)
    result = IntersectionSplitResult(
        elements_scanned=scanned,
        elements_need_split=split.elements_need_split,
        elements_split=split.elements_split,
        elements_removed=split.elements_removed,
        elements_added=split.elements_added,
        pairs_checked=pairs_checked,
        crossings_found=crossings,
        nodes_created=context.nodes.next_id - nodes_before,
    )
    logger.info(
        f"Intersection split: pairs={pairs_checked}, crossings={crossings}, "
        f"split={result.elements_split}, added={result.elements_added}, "
        f"new_nodes={result.nodes_created}"
    )
    return result
