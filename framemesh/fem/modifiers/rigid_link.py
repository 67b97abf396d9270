"""
Stitch remaining free ends to nearby members with RBE2 rigid links.

Each free end is tied to the foot of its perpendicular on the nearest
other element. The foot becomes (or reuses) a node that independently
carries the link; no existing node is moved.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from framemesh.core.constants import DEFAULT_RIGID_DOF, MOVE_EPS
from framemesh.fem.connectivity import build_node_degree
from framemesh.fem.fem_model import FEModelContext
from framemesh.fem.geometry import BoundingBox, Point3D, project_point_to_segment
from framemesh.fem.spatial_hash import ElementSpatialHash, suggest_cell_size

logger = logging.getLogger(__name__)

PROJECTION_SLACK = 1e-4


@dataclass(frozen=True)
class RigidLinkOptions:
    """Options for rigid-link stitching.

    Attributes:
        extra_margin: Added to the target's largest cross-section dimension
        dof: Constrained degrees of freedom written on each link
        grid_cell_size: Element hash cell size (median element length if None)
    """
    extra_margin: float = 5.0
    dof: str = DEFAULT_RIGID_DOF
    grid_cell_size: Optional[float] = None

    def __post_init__(self):
        if self.extra_margin < 0:
            raise ValueError(f"extra_margin must be >= 0, got {self.extra_margin}")
        if not self.dof or any(c not in "123456" for c in self.dof):
            raise ValueError(f"dof must be made of digits 1-6, got {self.dof!r}")


@dataclass
class RigidLinkResult:
    """Outcome of rigid-link stitching.

    Attributes:
        free_ends_checked: Free ends examined
        links: (rigid ID, master node ID, slave node ID) per link created
    """
    free_ends_checked: int = 0
    links: List[Tuple[int, int, int]] = field(default_factory=list)

    @property
    def rigids_created(self) -> int:
        return len(self.links)


def create_rigid_links(context: FEModelContext,
                       options: Optional[RigidLinkOptions] = None) -> RigidLinkResult:
    """Tie every free end to the nearest perpendicular foot on another element.

    Free ends that already hang from a rigid link are skipped, so a
    second run adds nothing.

    Args:
        context: Model to modify in place
        options: Search margin and DOF code

    Returns:
        RigidLinkResult listing the links created.
    """
    options = options or RigidLinkOptions()
    degree = build_node_degree(context)
    already_linked = context.rigids.dependent_node_ids()
    free_nodes = sorted(n for n, d in degree.items() if d == 1 and n not in already_linked)
    result = RigidLinkResult()
    if not free_nodes:
        logger.info("Rigid link: no free ends")
        return result

    max_radius = max((context.search_dimension(eid) for eid in context.elements.ids()),
                     default=0.0) + options.extra_margin
    cell_size = options.grid_cell_size or suggest_cell_size(context)
    element_hash = ElementSpatialHash(context, cell_size, inflate=max_radius)

    planned: List[Tuple[int, Point3D]] = []
    for free_id in free_nodes:
        result.free_ends_checked += 1
        p = context.nodes[free_id]
        best: Optional[Tuple[float, int, Point3D]] = None
        for target_id in sorted(element_hash.query_box(BoundingBox.from_point(p, max_radius))):
            target = context.elements.get(target_id)
            if target is None or free_id in target.node_ids:
                continue
            a, b = context.element_points(target_id)
            proj = project_point_to_segment(p, a, b)
            if proj.t < -PROJECTION_SLACK or proj.t > 1.0 + PROJECTION_SLACK:
                continue
            allowed = context.search_dimension(target_id) + options.extra_margin
            if proj.distance > allowed:
                continue
            if best is None or proj.distance < best[0]:
                best = (proj.distance, target_id, proj.point)

        if best is None or best[0] <= MOVE_EPS:
            continue
        planned.append((free_id, best[2]))
        logger.debug(f"Free end {free_id} links to element {best[1]} at distance {best[0]:.3f}")

    for free_id, foot in planned:
        master_id = context.nodes.add_or_get(foot.x, foot.y, foot.z)
        if master_id == free_id:
            continue
        rigid_id = context.rigids.add_new(master_id, [free_id], options.dof)
        result.links.append((rigid_id, master_id, free_id))

    logger.info(
        f"Rigid link: free_ends={result.free_ends_checked}, created={result.rigids_created}"
    )
    return result
