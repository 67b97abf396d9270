"""
Read-only model inspections used by the sanity inspector.

Every function here reports; none modifies the model.
"""

from typing import Dict, List, Optional, Set, Tuple

import numpy as np

from framemesh.fem.connectivity import build_node_degree, node_clusters
from framemesh.fem.fem_model import FEModelContext


def find_short_elements(context: FEModelContext, threshold: float) -> List[Tuple[int, float]]:
    """Elements shorter than threshold as (element ID, length)."""
    short = []
    for eid in context.elements.ids():
        if not context.element_has_nodes(eid):
            continue
        length = context.element_length(eid)
        if length < threshold:
            short.append((eid, length))
    return short


def find_coincident_node_groups(context: FEModelContext, tolerance: float) -> List[List[int]]:
    """Groups of nodes closer than tolerance to a lexicographic neighbour.

    Nodes are sorted by (x, y, z) and consecutive pairs compared, so this
    is a fast screen rather than an exhaustive neighbour search.
    """
    node_ids = context.nodes.ids()
    if len(node_ids) < 2:
        return []
    coords = np.array([context.nodes[n].as_tuple() for n in node_ids], dtype=float)
    order = np.lexsort((coords[:, 2], coords[:, 1], coords[:, 0]))
    gaps = np.linalg.norm(np.diff(coords[order], axis=0), axis=1)

    groups: List[List[int]] = []
    current: List[int] = []
    for i, gap in enumerate(gaps):
        if gap <= tolerance:
            if not current:
                current = [node_ids[order[i]]]
            current.append(node_ids[order[i + 1]])
        elif current:
            groups.append(sorted(current))
            current = []
    if current:
        groups.append(sorted(current))
    return groups


def find_duplicate_elements(context: FEModelContext) -> List[List[int]]:
    """Groups of elements joining the same pair of nodes in either order."""
    by_nodes: Dict[frozenset, List[int]] = {}
    for eid in context.elements.ids():
        key = frozenset(context.elements[eid].node_ids)
        by_nodes.setdefault(key, []).append(eid)
    return [ids for ids in by_nodes.values() if len(ids) > 1]


def find_invalid_elements(context: FEModelContext) -> Dict[int, str]:
    """Elements with a dangling reference, mapped to the reason."""
    invalid: Dict[int, str] = {}
    for eid in context.elements.ids():
        element = context.elements[eid]
        missing = [n for n in element.node_ids if n not in context.nodes]
        if missing:
            invalid[eid] = f"missing node(s) {missing}"
            continue
        prop = context.properties.get(element.property_id)
        if prop is None:
            invalid[eid] = f"missing property {element.property_id}"
        elif prop.material_id not in context.materials:
            invalid[eid] = f"property {element.property_id} references missing material {prop.material_id}"
    return invalid


def find_orphan_nodes(context: FEModelContext, degree: Optional[Dict[int, int]] = None) -> List[int]:
    """Nodes referenced by no element and no rigid link."""
    if degree is None:
        degree = build_node_degree(context)
    rigid_nodes: Set[int] = set()
    for _, rigid in context.rigids.items():
        rigid_nodes.add(rigid.independent_node)
        rigid_nodes.update(rigid.dependent_nodes)
    return sorted(n for n, d in degree.items() if d == 0 and n not in rigid_nodes)


def find_isolated_elements(context: FEModelContext) -> List[int]:
    """Elements with no node in the largest connected node cluster."""
    clusters = node_clusters(context)
    if not clusters:
        return []
    main = set(clusters[0])
    return [eid for eid in context.elements.ids()
            if not any(n in main for n in context.elements[eid].node_ids)]
