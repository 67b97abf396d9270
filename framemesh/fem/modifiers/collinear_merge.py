"""
Merge free ends into nearby nodes lying on their extension line.

Closes small gaps between members that continue each other: a free end
F with anchor A is merged into the nearest node N within the distance
tolerance when N lies ahead of F along A->F within the angle tolerance.
Nodes practically coincident with F are merged regardless of direction.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from framemesh.core.constants import DEFAULT_GRID_CELL_SIZE
from framemesh.fem.connectivity import build_node_degree
from framemesh.fem.fem_model import FEModelContext
from framemesh.fem.geometry import BoundingBox, angle_between_deg
from framemesh.fem.spatial_hash import NodeSpatialHash

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CollinearMergeOptions:
    """Options for collinear node merge.

    Attributes:
        distance_tolerance: Largest gap closed by a merge
        angle_tolerance_deg: Largest deviation of F->N from the element direction
        coincident_tolerance: Gap below which direction is ignored
        grid_cell_size: Node hash cell size
    """
    distance_tolerance: float = 30.0
    angle_tolerance_deg: float = 3.0
    coincident_tolerance: float = 0.1
    grid_cell_size: float = DEFAULT_GRID_CELL_SIZE

    def __post_init__(self):
        if self.distance_tolerance < 0:
            raise ValueError(f"distance_tolerance must be >= 0, got {self.distance_tolerance}")
        if not 0 <= self.angle_tolerance_deg <= 90:
            raise ValueError(f"angle_tolerance_deg must be in [0, 90], got {self.angle_tolerance_deg}")


@dataclass
class CollinearMergeResult:
    free_ends_checked: int = 0
    nodes_merged: int = 0
    elements_removed: int = 0


def _anchor_of(context: FEModelContext, node_id: int) -> Optional[int]:
    for eid in context.elements.referencing(node_id):
        return context.elements[eid].other_node(node_id)
    return None


def merge_collinear_nodes(context: FEModelContext,
                          options: Optional[CollinearMergeOptions] = None) -> CollinearMergeResult:
    """Merge free ends into the nearest node continuing their element line.

    Args:
        context: Model to modify in place
        options: Distance and angle tolerances

    Returns:
        CollinearMergeResult counters.
    """
    options = options or CollinearMergeOptions()
    node_hash = NodeSpatialHash(context, max(options.grid_cell_size, options.distance_tolerance))
    degree: Dict[int, int] = build_node_degree(context)
    result = CollinearMergeResult()

    for free_id in sorted(n for n, d in degree.items() if d == 1):
        # Earlier merges in this pass may have consumed or connected this node
        if free_id not in context.nodes or degree.get(free_id) != 1:
            continue
        anchor_id = _anchor_of(context, free_id)
        if anchor_id is None or anchor_id not in context.nodes:
            continue
        result.free_ends_checked += 1

        free_pt = context.nodes[free_id]
        direction = free_pt - context.nodes[anchor_id]
        best = None
        for cand in node_hash.query(BoundingBox.from_point(free_pt, options.distance_tolerance)):
            if cand in (free_id, anchor_id) or cand not in context.nodes:
                continue
            gap = context.nodes[cand] - free_pt
            dist = gap.magnitude
            if dist > options.distance_tolerance:
                continue
            if dist > options.coincident_tolerance:
                if angle_between_deg(direction, gap) > options.angle_tolerance_deg:
                    continue
            if best is None or (dist, cand) < best:
                best = (dist, cand)

        if best is None:
            continue
        dist, target = best
        removed = context.merge_nodes(keep=target, remove=free_id)
        degree[target] = degree.get(target, 0) + 1 - len(removed)
        degree.pop(free_id, None)
        result.nodes_merged += 1
        result.elements_removed += len(removed)
        logger.debug(f"Merged free end {free_id} into node {target} (gap {dist:.3f})")

    logger.info(
        f"Collinear merge: free_ends={result.free_ends_checked}, merged={result.nodes_merged}"
    )
    return result
