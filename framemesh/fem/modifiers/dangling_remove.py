"""
Remove short dangling stubs.

An element shorter than the threshold with at least one free end is an
overshoot left over from splitting and is deleted.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from framemesh.fem.connectivity import build_node_degree
from framemesh.fem.fem_model import FEModelContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DanglingRemoveOptions:
    """Options for dangling-stub removal.

    Attributes:
        length_threshold: Elements shorter than this with a free end are removed
    """
    length_threshold: float = 50.0

    def __post_init__(self):
        if self.length_threshold < 0:
            raise ValueError(f"length_threshold must be >= 0, got {self.length_threshold}")


@dataclass
class DanglingRemoveResult:
    elements_checked: int = 0
    removed_ids: List[int] = field(default_factory=list)

    @property
    def elements_removed(self) -> int:
        return len(self.removed_ids)


def remove_dangling_short_elements(context: FEModelContext,
                                   options: Optional[DanglingRemoveOptions] = None
                                   ) -> DanglingRemoveResult:
    """Delete short elements that have at least one free end.

    Degrees are computed once before removal, so a stub exposed by
    deleting its neighbour is left for the next pass.
    """
    options = options or DanglingRemoveOptions()
    degree = build_node_degree(context)
    result = DanglingRemoveResult()

    for eid in context.elements.ids():
        if not context.element_has_nodes(eid):
            continue
        result.elements_checked += 1
        n1, n2 = context.elements[eid].node_ids
        if degree.get(n1, 0) != 1 and degree.get(n2, 0) != 1:
            continue
        length = context.element_length(eid)
        if length < options.length_threshold:
            context.elements.remove(eid)
            result.removed_ids.append(eid)
            logger.debug(f"Removed dangling element {eid} (length {length:.3f})")

    logger.info(
        f"Dangling removal: checked={result.elements_checked}, removed={result.elements_removed} "
        f"(threshold {options.length_threshold})"
    )
    return result
