"""
Mutable finite-element model store.

The store is a set of ID-keyed collections (nodes, elements, properties,
materials, rigid links) aggregated by FEModelContext. All healing
algorithms mutate one context in place. IDs are allocated monotonically
per collection and never recycled.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple

from framemesh.core.constants import (
    DEFAULT_RIGID_DOF,
    ELEMENT_ID_START,
    MATERIAL_ID_START,
    NODE_ID_START,
    NODE_KEY_DECIMALS,
    PROPERTY_ID_START,
    RIGID_ID_START,
)
from framemesh.core.data_models import ElementMeta, SectionShape
from framemesh.fem.geometry import Point3D

logger = logging.getLogger(__name__)


def _coord_key(x: float, y: float, z: float) -> Tuple[float, float, float]:
    return (round(x, NODE_KEY_DECIMALS),
            round(y, NODE_KEY_DECIMALS),
            round(z, NODE_KEY_DECIMALS))


@dataclass(frozen=True)
class Element:
    """Two-node line element.

    Attributes:
        node_ids: Ordered (start, end) node IDs
        property_id: Section property ID
        meta: Optional metadata carried through splits
    """
    node_ids: Tuple[int, int]
    property_id: int
    meta: ElementMeta = field(default_factory=ElementMeta)

    def __post_init__(self):
        if len(self.node_ids) != 2:
            raise ValueError("Line element requires exactly 2 nodes")

    @property
    def start(self) -> int:
        return self.node_ids[0]

    @property
    def end(self) -> int:
        return self.node_ids[1]

    def other_node(self, node_id: int) -> int:
        return self.node_ids[1] if self.node_ids[0] == node_id else self.node_ids[0]

    def with_nodes(self, n1: int, n2: int) -> "Element":
        return replace(self, node_ids=(n1, n2))


@dataclass(frozen=True)
class Property:
    """Beam cross-section property.

    Attributes:
        shape: Cross-section shape
        material_id: Material ID
        dims: Shape dimensions in PBEAML order
    """
    shape: SectionShape
    material_id: int
    dims: Tuple[float, ...]

    @property
    def max_dimension(self) -> float:
        """Largest cross-section dimension, used as a search radius."""
        return max(self.dims) if self.dims else 0.0


@dataclass(frozen=True)
class Material:
    """Isotropic material (MAT1)."""
    name: str
    elastic_modulus: float
    poisson_ratio: float
    density: float

    def __post_init__(self):
        if self.elastic_modulus <= 0:
            raise ValueError(f"Elastic modulus must be positive, got {self.elastic_modulus}")
        if not -1.0 < self.poisson_ratio < 0.5:
            raise ValueError(f"Poisson ratio out of range: {self.poisson_ratio}")


@dataclass(frozen=True)
class RigidInfo:
    """RBE2 rigid link.

    Attributes:
        independent_node: Master node ID
        dependent_nodes: Slave node IDs in order
        dof: Constrained degrees of freedom
    """
    independent_node: int
    dependent_nodes: Tuple[int, ...]
    dof: str = DEFAULT_RIGID_DOF

    def __post_init__(self):
        if not self.dependent_nodes:
            raise ValueError("Rigid link requires at least one dependent node")
        if self.independent_node in self.dependent_nodes:
            raise ValueError(
                f"Independent node {self.independent_node} cannot also be dependent"
            )


class _Collection:
    """ID-keyed store with monotonic ID allocation."""

    _kind = "Item"

    def __init__(self, start_id: int):
        self._items: Dict[int, object] = {}
        self._next_id = start_id

    def _allocate(self) -> int:
        new_id = self._next_id
        self._next_id += 1
        return new_id

    def _bump(self, item_id: int) -> None:
        if item_id >= self._next_id:
            self._next_id = item_id + 1

    @property
    def next_id(self) -> int:
        return self._next_id

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: int) -> bool:
        return item_id in self._items

    def __iter__(self) -> Iterator[int]:
        return iter(self._items)

    def __getitem__(self, item_id: int):
        try:
            return self._items[item_id]
        except KeyError:
            raise KeyError(f"{self._kind} {item_id} does not exist") from None

    def get(self, item_id: int, default=None):
        return self._items.get(item_id, default)

    def ids(self) -> List[int]:
        """Snapshot of current IDs in ascending order."""
        return sorted(self._items)

    def items(self):
        return self._items.items()

    def remove(self, item_id: int) -> bool:
        return self._items.pop(item_id, None) is not None


class Nodes(_Collection):
    """Node store mapping ID to coordinates."""

    _kind = "Node"

    def __init__(self):
        super().__init__(NODE_ID_START)
        # Rounded coordinate -> IDs of every node there, oldest first
        self._key_index: Dict[Tuple[float, float, float], List[int]] = {}

    def add_or_get(self, x: float, y: float, z: float) -> int:
        """Return the ID of the node at (x, y, z), creating it if needed."""
        existing = self.find(x, y, z)
        if existing is not None:
            return existing
        node_id = self._allocate()
        self._store(node_id, Point3D(float(x), float(y), float(z)))
        return node_id

    def add_new(self, x: float, y: float, z: float) -> int:
        """Always create a new node, even if one exists at (x, y, z)."""
        node_id = self._allocate()
        self._store(node_id, Point3D(float(x), float(y), float(z)))
        return node_id

    def add_with_id(self, node_id: int, x: float, y: float, z: float) -> None:
        """Create or relocate a node keeping the given ID."""
        self._unindex(node_id)
        self._store(node_id, Point3D(float(x), float(y), float(z)))
        self._bump(node_id)

    def move(self, node_id: int, point: Point3D) -> None:
        if node_id not in self._items:
            raise KeyError(f"Node {node_id} does not exist")
        self.add_with_id(node_id, point.x, point.y, point.z)

    def find(self, x: float, y: float, z: float) -> Optional[int]:
        node_ids = self._key_index.get(_coord_key(x, y, z))
        return node_ids[0] if node_ids else None

    def remove(self, node_id: int) -> bool:
        self._unindex(node_id)
        return super().remove(node_id)

    def _store(self, node_id: int, point: Point3D) -> None:
        self._items[node_id] = point
        self._key_index.setdefault(_coord_key(point.x, point.y, point.z), []).append(node_id)

    def _unindex(self, node_id: int) -> None:
        point = self._items.get(node_id)
        if point is None:
            return
        key = _coord_key(point.x, point.y, point.z)
        node_ids = self._key_index.get(key, [])
        if node_id in node_ids:
            node_ids.remove(node_id)
        if not node_ids:
            self._key_index.pop(key, None)


class Elements(_Collection):
    """Element store mapping ID to Element."""

    _kind = "Element"

    def __init__(self):
        super().__init__(ELEMENT_ID_START)
        self._node_index: Dict[int, Set[int]] = {}

    def add_new(self, n1: int, n2: int, property_id: int,
                meta: Optional[ElementMeta] = None) -> int:
        element_id = self._allocate()
        self._store(element_id, Element((n1, n2), property_id, meta or ElementMeta()))
        return element_id

    def add_with_id(self, element_id: int, n1: int, n2: int, property_id: int,
                    meta: Optional[ElementMeta] = None) -> None:
        """Create or overwrite the element with the given ID."""
        self.replace(element_id, Element((n1, n2), property_id, meta or ElementMeta()))

    def replace(self, element_id: int, element: Element) -> None:
        self._unindex(element_id)
        self._store(element_id, element)
        self._bump(element_id)

    def remove(self, element_id: int) -> bool:
        self._unindex(element_id)
        return super().remove(element_id)

    def referencing(self, node_id: int) -> List[int]:
        """IDs of the elements using node_id, ascending."""
        return sorted(self._node_index.get(node_id, ()))

    def _store(self, element_id: int, element: Element) -> None:
        self._items[element_id] = element
        for node_id in element.node_ids:
            self._node_index.setdefault(node_id, set()).add(element_id)

    def _unindex(self, element_id: int) -> None:
        element = self._items.get(element_id)
        if element is None:
            return
        for node_id in element.node_ids:
            element_ids = self._node_index.get(node_id)
            if element_ids is None:
                continue
            element_ids.discard(element_id)
            if not element_ids:
                del self._node_index[node_id]


class Properties(_Collection):
    """Section property store, deduplicated on shape/dims/material."""

    _kind = "Property"

    def __init__(self):
        super().__init__(PROPERTY_ID_START)
        self._index: Dict[Tuple, int] = {}

    def add_or_get(self, shape: SectionShape, dims: Sequence[float], material_id: int) -> int:
        dims = tuple(float(d) for d in dims)
        key = (shape, tuple(round(d, NODE_KEY_DECIMALS) for d in dims), material_id)
        existing = self._index.get(key)
        if existing is not None and existing in self._items:
            return existing
        prop_id = self._allocate()
        self._items[prop_id] = Property(shape, material_id, dims)
        self._index[key] = prop_id
        return prop_id

    def add_with_id(self, prop_id: int, prop: Property) -> None:
        self._items[prop_id] = prop
        self._bump(prop_id)


class Materials(_Collection):
    """Material store, deduplicated by name."""

    _kind = "Material"

    def __init__(self):
        super().__init__(MATERIAL_ID_START)

    def add_or_get(self, name: str, elastic_modulus: float, poisson_ratio: float,
                   density: float) -> int:
        for mat_id, mat in self._items.items():
            if mat.name == name:
                return mat_id
        mat_id = self._allocate()
        self._items[mat_id] = Material(name, elastic_modulus, poisson_ratio, density)
        return mat_id


class Rigids(_Collection):
    """RBE2 store. IDs start at 9,000,001 to stay clear of element IDs."""

    _kind = "Rigid"

    def __init__(self):
        super().__init__(RIGID_ID_START)

    def add_new(self, independent_node: int, dependent_nodes: Sequence[int],
                dof: str = DEFAULT_RIGID_DOF) -> int:
        rigid_id = self._allocate()
        self._items[rigid_id] = RigidInfo(independent_node, tuple(dependent_nodes), dof)
        return rigid_id

    def add_with_id(self, rigid_id: int, rigid: RigidInfo) -> None:
        self._items[rigid_id] = rigid
        self._bump(rigid_id)

    def dependent_node_ids(self) -> set:
        deps = set()
        for rigid in self._items.values():
            deps.update(rigid.dependent_nodes)
        return deps


@dataclass
class FEModelContext:
    """Aggregate root holding one of each model collection."""
    nodes: Nodes = field(default_factory=Nodes)
    elements: Elements = field(default_factory=Elements)
    properties: Properties = field(default_factory=Properties)
    materials: Materials = field(default_factory=Materials)
    rigids: Rigids = field(default_factory=Rigids)

    def element_points(self, element_id: int) -> Tuple[Point3D, Point3D]:
        element = self.elements[element_id]
        return self.nodes[element.start], self.nodes[element.end]

    def element_length(self, element_id: int) -> float:
        a, b = self.element_points(element_id)
        return a.distance_to(b)

    def element_has_nodes(self, element_id: int) -> bool:
        element = self.elements.get(element_id)
        return element is not None and all(n in self.nodes for n in element.node_ids)

    def search_dimension(self, element_id: int) -> float:
        """Largest cross-section dimension of an element (0 if unknown)."""
        prop = self.properties.get(self.elements[element_id].property_id)
        return prop.max_dimension if prop is not None else 0.0

    def merge_nodes(self, keep: int, remove: int) -> List[int]:
        """Rewire every reference from `remove` to `keep` and delete `remove`.

        Elements left with fewer than two distinct nodes are deleted;
        rigids whose dependents collapse onto their master are deleted.

        Returns:
            IDs of the elements deleted as degenerate.
        """
        if keep == remove:
            return []
        degenerate: List[int] = []
        for eid in self.elements.referencing(remove):
            element = self.elements[eid]
            n1, n2 = (keep if n == remove else n for n in element.node_ids)
            if n1 == n2:
                self.elements.remove(eid)
                degenerate.append(eid)
            else:
                self.elements.replace(eid, element.with_nodes(n1, n2))

        for rid, rigid in list(self.rigids.items()):
            if remove != rigid.independent_node and remove not in rigid.dependent_nodes:
                continue
            master = keep if rigid.independent_node == remove else rigid.independent_node
            deps = []
            for n in rigid.dependent_nodes:
                n = keep if n == remove else n
                if n != master and n not in deps:
                    deps.append(n)
            self.rigids.remove(rid)
            if deps:
                self.rigids.add_with_id(rid, RigidInfo(master, tuple(deps), rigid.dof))

        self.nodes.remove(remove)
        if degenerate:
            logger.debug(f"Merging node {remove} into {keep} removed degenerate elements {degenerate}")
        return degenerate
