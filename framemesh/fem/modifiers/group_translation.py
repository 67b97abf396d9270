"""
Snap disconnected element groups onto the main structure.

The largest connected group is the master. Every other group is moved
as a rigid body by the smallest offset that brings one of its free ends
onto a master element within that element's search radius.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Set, Tuple

from framemesh.core.constants import MOVE_EPS
from framemesh.fem.connectivity import build_node_degree, find_connected_element_groups
from framemesh.fem.fem_model import FEModelContext
from framemesh.fem.geometry import BoundingBox, Point3D, project_point_to_segment
from framemesh.fem.spatial_hash import ElementSpatialHash, suggest_cell_size

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GroupTranslationOptions:
    """Options for rigid group translation.

    Attributes:
        extra_margin: Added to the master element's largest cross-section dimension
        grid_cell_size: Element hash cell size (median element length if None)
    """
    extra_margin: float = 50.0
    grid_cell_size: Optional[float] = None

    def __post_init__(self):
        if self.extra_margin < 0:
            raise ValueError(f"extra_margin must be >= 0, got {self.extra_margin}")


@dataclass
class GroupTranslationResult:
    """Outcome of one translation pass.

    Attributes:
        group_count: Connected groups found
        groups_translated: Slave groups moved
        offsets: (first element ID of the group, applied offset) per move
    """
    group_count: int = 0
    groups_translated: int = 0
    offsets: List[Tuple[int, Point3D]] = field(default_factory=list)


def translate_disconnected_groups(context: FEModelContext,
                                  options: Optional[GroupTranslationOptions] = None
                                  ) -> GroupTranslationResult:
    """Move each slave group so one of its free ends lands on the master group.

    Args:
        context: Model to modify in place
        options: Search margin

    Returns:
        GroupTranslationResult with the number of groups moved.
    """
    options = options or GroupTranslationOptions()
    groups = find_connected_element_groups(context.elements)
    result = GroupTranslationResult(group_count=len(groups))
    if len(groups) < 2:
        logger.info(f"Group translation: {len(groups)} group(s), nothing to translate")
        return result

    master = [eid for eid in groups[0] if context.element_has_nodes(eid)]
    margin_max = max((context.search_dimension(eid) for eid in master), default=0.0) + options.extra_margin
    cell_size = options.grid_cell_size or suggest_cell_size(context)
    master_hash = ElementSpatialHash(context, cell_size, inflate=margin_max, element_ids=master)
    degree = build_node_degree(context)

    for group in groups[1:]:
        group_nodes: Set[int] = set()
        for eid in group:
            group_nodes.update(n for n in context.elements[eid].node_ids if n in context.nodes)
        free_nodes = sorted(n for n in group_nodes if degree.get(n) == 1)

        best: Optional[Tuple[float, int, Point3D, Point3D]] = None
        for node_id in free_nodes:
            p = context.nodes[node_id]
            for target_id in sorted(master_hash.query_box(BoundingBox.from_point(p, margin_max))):
                a, b = context.element_points(target_id)
                proj = project_point_to_segment(p, a, b)
                allowed = context.search_dimension(target_id) + options.extra_margin
                if proj.distance > allowed:
                    continue
                if best is None or proj.distance < best[0]:
                    best = (proj.distance, node_id, p, proj.point)

        if best is None or best[0] <= MOVE_EPS:
            continue

        distance, node_id, source, target = best
        offset = target - source
        for n in sorted(group_nodes):
            context.nodes.move(n, context.nodes[n] + offset)
        result.groups_translated += 1
        result.offsets.append((group[0], offset))
        logger.debug(
            f"Translated group of {len(group)} elements (first {group[0]}) by {distance:.3f} "
            f"via free end {node_id}"
        )

    logger.info(
        f"Group translation: groups={result.group_count}, translated={result.groups_translated}"
    )
    return result
