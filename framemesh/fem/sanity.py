"""
Composite sanity inspection run after every pipeline stage.

Checks run in a fixed order: connectivity, node degree (orphans are
deleted), short elements, coincident nodes, duplicate elements,
reference integrity (broken elements are deleted) and isolation. The
free-end list returned here drives the SPC records of the export.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from framemesh.fem.connectivity import build_node_degree, find_connected_element_groups
from framemesh.fem.fem_model import FEModelContext
from framemesh.fem.inspectors import (
    find_coincident_node_groups,
    find_duplicate_elements,
    find_invalid_elements,
    find_isolated_elements,
    find_orphan_nodes,
    find_short_elements,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SanityOptions:
    """Options for the sanity inspector.

    Attributes:
        short_threshold: Elements shorter than this are reported
        coincident_tolerance: Node pairs closer than this are reported
        listing_limit: Items listed per finding unless verbose
    """
    short_threshold: float = 1.0
    coincident_tolerance: float = 0.1
    listing_limit: int = 5

    def __post_init__(self):
        if self.short_threshold < 0 or self.coincident_tolerance < 0:
            raise ValueError("Sanity tolerances must be >= 0")
        if self.listing_limit < 0:
            raise ValueError(f"listing_limit must be >= 0, got {self.listing_limit}")


@dataclass
class SanityReport:
    """Findings and repairs of one inspection.

    Attributes:
        label: Stage label the inspection belongs to
        group_count: Connected element groups
        free_end_nodes: Degree-1 nodes not tied by a rigid link
        orphans_removed: Degree-0 nodes deleted
        short_elements: (element ID, length) below the threshold
        coincident_groups: Node groups closer than the tolerance
        duplicate_groups: Element groups sharing the same node pair
        invalid_removed: Deleted element IDs mapped to the broken reference
        isolated_elements: Elements outside the largest node cluster
    """
    label: str = ""
    group_count: int = 0
    free_end_nodes: List[int] = field(default_factory=list)
    orphans_removed: List[int] = field(default_factory=list)
    short_elements: List[Tuple[int, float]] = field(default_factory=list)
    coincident_groups: List[List[int]] = field(default_factory=list)
    duplicate_groups: List[List[int]] = field(default_factory=list)
    invalid_removed: Dict[int, str] = field(default_factory=dict)
    isolated_elements: List[int] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        """True when the model is a single group with nothing to report."""
        return (self.group_count <= 1
                and not self.short_elements
                and not self.coincident_groups
                and not self.duplicate_groups
                and not self.isolated_elements)

    def summary(self) -> Dict[str, int]:
        return {
            "groups": self.group_count,
            "free_ends": len(self.free_end_nodes),
            "orphans_removed": len(self.orphans_removed),
            "short_elements": len(self.short_elements),
            "coincident_groups": len(self.coincident_groups),
            "duplicate_groups": len(self.duplicate_groups),
            "invalid_removed": len(self.invalid_removed),
            "isolated_elements": len(self.isolated_elements),
        }


def _listing(items, verbose: bool, limit: int) -> str:
    items = list(items)
    if verbose or len(items) <= limit:
        return ", ".join(str(i) for i in items)
    shown = ", ".join(str(i) for i in items[:limit])
    return f"{shown}, ... (+{len(items) - limit} more)"


def _free_ends(context: FEModelContext, degree: Dict[int, int]) -> List[int]:
    linked = context.rigids.dependent_node_ids()
    return sorted(n for n, d in degree.items() if d == 1 and n not in linked)


def _remove_orphans(context: FEModelContext, degree: Dict[int, int]) -> List[int]:
    orphans = find_orphan_nodes(context, degree)
    for node_id in orphans:
        context.nodes.remove(node_id)
        degree.pop(node_id, None)
    return orphans


def inspect_model(context: FEModelContext, options: Optional[SanityOptions] = None,
                  label: str = "", verbose: bool = False) -> SanityReport:
    """Run every sanity check, repairing orphans and broken references.

    Args:
        context: Model to inspect (orphan nodes and broken elements are deleted)
        options: Inspection thresholds
        label: Stage label used in log messages
        verbose: List every offending item instead of the first few

    Returns:
        SanityReport with findings and repairs.
    """
    options = options or SanityOptions()
    report = SanityReport(label=label)
    limit = options.listing_limit
    prefix = f"[{label}] " if label else ""

    # 1. connectivity
    groups = find_connected_element_groups(context.elements)
    report.group_count = len(groups)
    if len(groups) > 1:
        logger.warning(f"{prefix}Connectivity: {len(groups)} disconnected groups "
                       f"(sizes {_listing((len(g) for g in groups), verbose, limit)})")
    else:
        logger.info(f"{prefix}Connectivity: PASS ({len(groups)} group)")

    # 2. node degree
    degree = build_node_degree(context)
    report.free_end_nodes = _free_ends(context, degree)
    report.orphans_removed = _remove_orphans(context, degree)
    if report.free_end_nodes:
        logger.warning(f"{prefix}Free ends: {len(report.free_end_nodes)} "
                       f"[{_listing(report.free_end_nodes, verbose, limit)}]")
    if report.orphans_removed:
        logger.info(f"{prefix}Repaired: removed {len(report.orphans_removed)} orphan node(s) "
                    f"[{_listing(report.orphans_removed, verbose, limit)}]")

    # 3. short elements
    report.short_elements = find_short_elements(context, options.short_threshold)
    if report.short_elements:
        logger.warning(
            f"{prefix}Short elements (< {options.short_threshold}): {len(report.short_elements)} "
            f"[{_listing((f'{eid}:{length:.4f}' for eid, length in report.short_elements), verbose, limit)}]"
        )

    # 4. coincident nodes
    report.coincident_groups = find_coincident_node_groups(context, options.coincident_tolerance)
    if report.coincident_groups:
        logger.warning(f"{prefix}Coincident nodes (tol {options.coincident_tolerance}): "
                       f"{len(report.coincident_groups)} group(s) "
                       f"[{_listing(report.coincident_groups, verbose, limit)}]")

    # 5. duplicate elements
    report.duplicate_groups = find_duplicate_elements(context)
    if report.duplicate_groups:
        logger.warning(f"{prefix}Duplicate elements: {len(report.duplicate_groups)} group(s) "
                       f"[{_listing(report.duplicate_groups, verbose, limit)}]")

    # 6. integrity
    invalid = find_invalid_elements(context)
    for eid, reason in invalid.items():
        context.elements.remove(eid)
        logger.debug(f"{prefix}Removed element {eid}: {reason}")
    report.invalid_removed = invalid
    if invalid:
        logger.info(f"{prefix}Repaired: removed {len(invalid)} element(s) with broken references "
                    f"[{_listing(invalid, verbose, limit)}]")
        degree = build_node_degree(context)
        more = _remove_orphans(context, degree)
        report.orphans_removed.extend(more)
        report.free_end_nodes = _free_ends(context, degree)

    # 7. isolation
    report.isolated_elements = find_isolated_elements(context)
    if report.isolated_elements:
        logger.warning(f"{prefix}Isolated elements: {len(report.isolated_elements)} "
                       f"[{_listing(report.isolated_elements, verbose, limit)}]")

    logger.info(f"{prefix}Sanity summary: {report.summary()}")
    return report
