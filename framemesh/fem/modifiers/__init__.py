"""
Geometric repair modifiers for line meshes.

Each modifier mutates an FEModelContext in place, rebuilds the spatial
indexes it needs on every call and returns a small result record.

Available modifiers:
- split_elements_by_existing_nodes: Split elements at nodes on their span
- split_elements_at_intersections: Join crossing elements at a shared node
- remove_dangling_short_elements: Delete short stubs with a free end
- collapse_short_elements: Collapse tiny elements into one node
- merge_collinear_nodes: Merge free ends into nodes on their extension line
- extend_free_ends: Extend free ends along their axis onto other members
- translate_disconnected_groups: Snap disconnected groups onto the main structure
- create_rigid_links: Tie remaining free ends to members with RBE2 links
"""

from framemesh.fem.modifiers.collinear_merge import (
    CollinearMergeOptions,
    CollinearMergeResult,
    merge_collinear_nodes,
)
from framemesh.fem.modifiers.dangling_remove import (
    DanglingRemoveOptions,
    DanglingRemoveResult,
    remove_dangling_short_elements,
)
from framemesh.fem.modifiers.extend_to_intersect import (
    ExtendOptions,
    ExtendResult,
    FreeEndExtender,
    extend_free_ends,
)
from framemesh.fem.modifiers.group_translation import (
    GroupTranslationOptions,
    GroupTranslationResult,
    translate_disconnected_groups,
)
from framemesh.fem.modifiers.intersection_split import (
    IntersectionSplitOptions,
    IntersectionSplitResult,
    split_elements_at_intersections,
)
from framemesh.fem.modifiers.rigid_link import (
    RigidLinkOptions,
    RigidLinkResult,
    create_rigid_links,
)
from framemesh.fem.modifiers.short_collapse import (
    ShortCollapseOptions,
    ShortCollapseResult,
    collapse_short_elements,
)
from framemesh.fem.modifiers.split_by_nodes import (
    SplitByNodesOptions,
    SplitResult,
    apply_element_splits,
    split_elements_by_existing_nodes,
)

__all__ = [
    "CollinearMergeOptions",
    "CollinearMergeResult",
    "merge_collinear_nodes",
    "DanglingRemoveOptions",
    "DanglingRemoveResult",
    "remove_dangling_short_elements",
    "ExtendOptions",
    "ExtendResult",
    "FreeEndExtender",
    "extend_free_ends",
    "GroupTranslationOptions",
    "GroupTranslationResult",
    "translate_disconnected_groups",
    "IntersectionSplitOptions",
    "IntersectionSplitResult",
    "split_elements_at_intersections",
    "RigidLinkOptions",
    "RigidLinkResult",
    "create_rigid_links",
    "ShortCollapseOptions",
    "ShortCollapseResult",
    "collapse_short_elements",
    "SplitByNodesOptions",
    "SplitResult",
    "apply_element_splits",
    "split_elements_by_existing_nodes",
]
