"""
Extend free ends along their member axis onto nearby members.

For every free node a ray is cast from its anchor (the other end of its
only element) through the free node. The nearest acceptable approach to
another element within that element's cross-section search radius
relocates the free node onto the target segment, so a later split joins
the two members. Targets parallel to the ray are reached through their
nearest endpoint on the ray line. A free end already lying on another
element is left alone until a split joins it.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from framemesh.core.constants import MOVE_EPS
from framemesh.fem.connectivity import build_node_degree
from framemesh.fem.fem_model import FEModelContext
from framemesh.fem.geometry import (
    BoundingBox,
    Point3D,
    RayHit,
    intersect_ray_segment,
    project_point_to_line,
    project_point_to_segment,
)
from framemesh.fem.spatial_hash import ElementSpatialHash, suggest_cell_size

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtendOptions:
    """Options for free-end extension.

    Attributes:
        extra_margin: Added to the target's largest cross-section dimension
        param_slack: Allowed overshoot of the target segment parameter
        snap_tolerance: Hits this close to a target endpoint merge into it
        max_passes: Cap on re-scans until no node moves
        grid_cell_size: Element hash cell size (median element length if None)
    """
    extra_margin: float = 10.0
    param_slack: float = 1e-3
    snap_tolerance: float = 0.05
    max_passes: int = 10
    grid_cell_size: Optional[float] = None

    def __post_init__(self):
        if self.extra_margin < 0:
            raise ValueError(f"extra_margin must be >= 0, got {self.extra_margin}")
        if self.max_passes < 1:
            raise ValueError(f"max_passes must be >= 1, got {self.max_passes}")


@dataclass
class ExtendResult:
    """Outcome of an extension run.

    Attributes:
        passes: Passes executed
        nodes_moved: Relocations performed, over all passes
        nodes_merged: Free ends merged into a target endpoint
        moves: (node ID, old position, new position) per relocation
    """
    passes: int = 0
    nodes_moved: int = 0
    nodes_merged: int = 0
    moves: List[Tuple[int, Point3D, Point3D]] = field(default_factory=list)

    @property
    def total_changes(self) -> int:
        return self.nodes_moved + self.nodes_merged


@dataclass(frozen=True)
class _Candidate:
    s: float
    target_id: int
    point: Point3D
    t: float


class FreeEndExtender:
    """Casts rays from free ends and relocates them onto target members.

    Args:
        context: Model to modify in place
        options: Extension options
    """

    def __init__(self, context: FEModelContext, options: Optional[ExtendOptions] = None):
        self.context = context
        self.options = options or ExtendOptions()

    def run(self) -> ExtendResult:
        """Repeat extension passes until no node moves or the pass cap is hit."""
        result = ExtendResult()
        for _ in range(self.options.max_passes):
            result.passes += 1
            changed = self._run_pass(result)
            if changed == 0:
                break
        else:
            logger.warning(f"Extension did not settle within {self.options.max_passes} passes")

        logger.info(
            f"Extend to intersect: passes={result.passes}, moved={result.nodes_moved}, "
            f"merged={result.nodes_merged}"
        )
        return result

    def _search_radius(self, element_id: int) -> float:
        return self.context.search_dimension(element_id) + self.options.extra_margin

    def _run_pass(self, result: ExtendResult) -> int:
        ctx = self.context
        degree: Dict[int, int] = build_node_degree(ctx)
        free_nodes = sorted(n for n, d in degree.items() if d == 1)
        if not free_nodes:
            return 0

        max_radius = max((self._search_radius(eid) for eid in ctx.elements.ids()), default=0.0)
        cell_size = self.options.grid_cell_size or suggest_cell_size(ctx)
        # Moved nodes drag their elements by at most one radius within a pass
        element_hash = ElementSpatialHash(ctx, cell_size, inflate=2.0 * max_radius)

        handled: Set[int] = set()
        changed = 0
        for free_id in free_nodes:
            if free_id in handled or free_id not in ctx.nodes or degree.get(free_id) != 1:
                continue
            referencing = ctx.elements.referencing(free_id)
            if len(referencing) != 1:
                continue
            own_id = referencing[0]
            anchor_id = ctx.elements[own_id].other_node(free_id)
            if anchor_id not in ctx.nodes:
                continue

            free_pt = ctx.nodes[free_id]
            direction = free_pt - ctx.nodes[anchor_id]
            if direction.magnitude < MOVE_EPS:
                continue
            if self._rests_on_element(free_id, free_pt, element_hash):
                continue

            best = self._best_hit(free_id, anchor_id, free_pt, direction, element_hash, max_radius)
            if best is None:
                continue

            handled.add(free_id)
            changed += 1
            snap_id = self._snap_endpoint(best)
            if snap_id is not None and snap_id != free_id:
                ctx.merge_nodes(keep=snap_id, remove=free_id)
                degree.pop(free_id, None)
                degree[snap_id] = degree.get(snap_id, 0) + 1
                handled.add(snap_id)
                result.nodes_merged += 1
                logger.debug(f"Free end {free_id} merged into node {snap_id} of element {best.target_id}")
            else:
                ctx.nodes.move(free_id, best.point)
                result.nodes_moved += 1
                result.moves.append((free_id, free_pt, best.point))
                logger.debug(
                    f"Free end {free_id} moved {best.s:+.3f} along its axis onto element {best.target_id}"
                )
        return changed

    def _rests_on_element(self, free_id: int, free_pt: Point3D,
                          element_hash: ElementSpatialHash) -> bool:
        """True if the free end already lies on another element, awaiting a split."""
        ctx = self.context
        for target_id in element_hash.query_box(BoundingBox.from_point(free_pt, MOVE_EPS)):
            target = ctx.elements.get(target_id)
            if target is None or free_id in target.node_ids or not ctx.element_has_nodes(target_id):
                continue
            a, b = ctx.element_points(target_id)
            proj = project_point_to_segment(free_pt, a, b)
            if proj.distance <= MOVE_EPS and 0.0 <= proj.t <= 1.0:
                return True
        return False

    def _best_hit(self, free_id: int, anchor_id: int, free_pt: Point3D, direction: Point3D,
                  element_hash: ElementSpatialHash, max_radius: float) -> Optional[_Candidate]:
        ctx = self.context
        best: Optional[_Candidate] = None
        for target_id in sorted(element_hash.query_box(BoundingBox.from_point(free_pt, max_radius))):
            target = ctx.elements.get(target_id)
            if target is None or free_id in target.node_ids or anchor_id in target.node_ids:
                continue
            if not ctx.element_has_nodes(target_id):
                continue
            radius = self._search_radius(target_id)
            a, b = ctx.element_points(target_id)

            hit = intersect_ray_segment(free_pt, direction, a, b, radius, self.options.param_slack)
            candidate = self._accept(hit, target_id, free_pt, radius) if hit is not None \
                else self._collinear_hit(target_id, free_pt, direction, a, b, radius)
            if candidate is None:
                continue
            if best is None or (abs(candidate.s), candidate.target_id) < (abs(best.s), best.target_id):
                best = candidate
        return best

    @staticmethod
    def _accept(hit: RayHit, target_id: int, free_pt: Point3D, radius: float) -> Optional[_Candidate]:
        if abs(hit.s) <= MOVE_EPS or abs(hit.s) > radius:
            return None
        if free_pt.distance_to(hit.segment_point) > radius:
            return None
        return _Candidate(s=hit.s, target_id=target_id, point=hit.segment_point, t=hit.t)

    @staticmethod
    def _collinear_hit(target_id: int, free_pt: Point3D, direction: Point3D,
                       a: Point3D, b: Point3D, radius: float) -> Optional[_Candidate]:
        """Nearest endpoint of a target running along the ray line."""
        unit = direction.normalize()
        line_end = free_pt + unit
        best: Optional[_Candidate] = None
        for t, end in ((0.0, a), (1.0, b)):
            proj = project_point_to_line(end, free_pt, line_end)
            if proj is None or proj.distance > radius:
                continue
            s = (end - free_pt).dot(unit)
            if abs(s) <= MOVE_EPS or abs(s) > radius or free_pt.distance_to(end) > radius:
                continue
            if best is None or abs(s) < abs(best.s):
                best = _Candidate(s=s, target_id=target_id, point=end, t=t)
        if best is None:
            return None
        # Only a target that does not cross the ray line counts as collinear
        if abs((b - a).normalize().dot(unit)) < 1.0 - 1e-6:
            return None
        return best

    def _snap_endpoint(self, candidate: _Candidate) -> Optional[int]:
        element = self.context.elements[candidate.target_id]
        for node_id in element.node_ids:
            if self.context.nodes[node_id].distance_to(candidate.point) <= self.options.snap_tolerance:
                return node_id
        return None


def extend_free_ends(context: FEModelContext, options: Optional[ExtendOptions] = None) -> ExtendResult:
    """Run FreeEndExtender on the model."""
    return FreeEndExtender(context, options).run()
