"""
Connectivity analysis over the element graph.

Union-find grouping of elements sharing nodes, and node degree counts.
Both functions are pure with respect to the model.
"""

from typing import Dict, Iterable, List, Optional

from framemesh.fem.fem_model import Elements, FEModelContext


class UnionFind:
    """Union-find keyed by arbitrary integer IDs."""

    def __init__(self, items: Iterable[int] = ()):
        self.parent: Dict[int, int] = {}
        self.rank: Dict[int, int] = {}
        for item in items:
            self.add(item)

    def add(self, x: int) -> None:
        if x not in self.parent:
            self.parent[x] = x
            self.rank[x] = 0

    def find(self, x: int) -> int:
        self.add(x)
        root = x
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[x] != root:
            self.parent[x], x = root, self.parent[x]
        return root

    def union(self, x: int, y: int) -> bool:
        rx, ry = self.find(x), self.find(y)
        if rx == ry:
            return False
        if self.rank[rx] < self.rank[ry]:
            rx, ry = ry, rx
        self.parent[ry] = rx
        if self.rank[rx] == self.rank[ry]:
            self.rank[rx] += 1
        return True

    def get_clusters(self) -> Dict[int, List[int]]:
        clusters: Dict[int, List[int]] = {}
        for item in self.parent:
            clusters.setdefault(self.find(item), []).append(item)
        return clusters


def find_connected_element_groups(elements: Elements) -> List[List[int]]:
    """Partition elements into groups connected through shared nodes.

    Args:
        elements: Element store

    Returns:
        Lists of element IDs (ascending), largest group first; ties are
        ordered by smallest element ID.
    """
    uf = UnionFind()
    for _, element in elements.items():
        first = element.node_ids[0]
        uf.add(first)
        for other in element.node_ids[1:]:
            uf.union(first, other)

    groups: Dict[int, List[int]] = {}
    for eid in elements.ids():
        root = uf.find(elements[eid].node_ids[0])
        groups.setdefault(root, []).append(eid)

    return sorted(groups.values(), key=lambda g: (-len(g), g[0]))


def build_node_degree(context: FEModelContext) -> Dict[int, int]:
    """Number of elements referencing each node present in the store.

    Nodes referenced by no element have degree 0. References to nodes
    missing from the store are ignored.
    """
    degree = {node_id: 0 for node_id in context.nodes}
    for _, element in context.elements.items():
        for node_id in element.node_ids:
            if node_id in degree:
                degree[node_id] += 1
    return degree


def free_end_nodes(context: FEModelContext, degree: Optional[Dict[int, int]] = None) -> List[int]:
    """Nodes of degree 1, ascending."""
    if degree is None:
        degree = build_node_degree(context)
    return sorted(n for n, d in degree.items() if d == 1)


def node_clusters(context: FEModelContext) -> List[List[int]]:
    """Node sets connected through elements, largest first.

    Every node in the store appears exactly once; unreferenced nodes
    form singleton clusters.
    """
    uf = UnionFind(context.nodes.ids())
    for _, element in context.elements.items():
        a, b = element.node_ids
        if a in context.nodes and b in context.nodes:
            uf.union(a, b)
    clusters = [sorted(c) for c in uf.get_clusters().values()]
    return sorted(clusters, key=lambda c: (-len(c), c[0]))
