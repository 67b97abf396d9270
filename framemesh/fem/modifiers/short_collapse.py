"""
Collapse elements shorter than a tolerance into a single node.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from framemesh.fem.fem_model import FEModelContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShortCollapseOptions:
    """Options for short-element collapse.

    Attributes:
        tolerance: Elements shorter than this are collapsed
    """
    tolerance: float = 1.0

    def __post_init__(self):
        if self.tolerance < 0:
            raise ValueError(f"tolerance must be >= 0, got {self.tolerance}")


@dataclass
class ShortCollapseResult:
    collapsed_ids: List[int] = field(default_factory=list)
    degenerate_ids: List[int] = field(default_factory=list)
    nodes_removed: int = 0

    @property
    def elements_collapsed(self) -> int:
        return len(self.collapsed_ids)


def collapse_short_elements(context: FEModelContext,
                            options: Optional[ShortCollapseOptions] = None) -> ShortCollapseResult:
    """Collapse every element shorter than the tolerance.

    The element is deleted and its second node merged into its first;
    neighbours referencing the removed node are rewired, and any that
    degenerate to a single node are deleted.

    Args:
        context: Model to modify in place
        options: Collapse tolerance

    Returns:
        ShortCollapseResult listing collapsed and degenerate element IDs.
    """
    options = options or ShortCollapseOptions()
    result = ShortCollapseResult()

    for eid in context.elements.ids():
        # Earlier collapses may have deleted or rewired this element
        if eid not in context.elements or not context.element_has_nodes(eid):
            continue
        length = context.element_length(eid)
        if length >= options.tolerance:
            continue

        keep, remove = context.elements[eid].node_ids
        context.elements.remove(eid)
        result.collapsed_ids.append(eid)
        if keep == remove:
            continue
        result.degenerate_ids.extend(context.merge_nodes(keep, remove))
        result.nodes_removed += 1
        logger.debug(f"Collapsed element {eid} (length {length:.4f}): node {remove} -> {keep}")

    logger.info(
        f"Short collapse: collapsed={result.elements_collapsed}, "
        f"degenerate_removed={len(result.degenerate_ids)}, nodes_removed={result.nodes_removed}"
    )
    return result
