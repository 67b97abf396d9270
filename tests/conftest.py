import sys
from pathlib import Path
from typing import Dict, Tuple

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from framemesh.core.constants import (
    STEEL_DENSITY,
    STEEL_ELASTIC_MODULUS,
    STEEL_NAME,
    STEEL_POISSON_RATIO,
)
from framemesh.core.data_models import SectionShape
from framemesh.fem.fem_model import FEModelContext

NodeTable = Dict[int, Tuple[float, float, float]]
ElementTable = Dict[int, Tuple[int, int]]


def build_context(nodes: NodeTable, elements: ElementTable, max_dim: float = 40.0) -> FEModelContext:
    """Model with fixed node/element IDs sharing one BAR property of size max_dim."""
    context = FEModelContext()
    material_id = context.materials.add_or_get(
        STEEL_NAME, STEEL_ELASTIC_MODULUS, STEEL_POISSON_RATIO, STEEL_DENSITY
    )
    property_id = context.properties.add_or_get(SectionShape.BAR, (max_dim, max_dim), material_id)
    for node_id, (x, y, z) in nodes.items():
        context.nodes.add_with_id(node_id, x, y, z)
    for element_id, (n1, n2) in elements.items():
        context.elements.add_with_id(element_id, n1, n2, property_id)
    return context


def element_table(context: FEModelContext) -> ElementTable:
    """Current elements as {id: (start, end)}."""
    return {eid: context.elements[eid].node_ids for eid in context.elements.ids()}


@pytest.fixture
def member_csv(tmp_path: Path) -> Path:
    """Small member table: a beam, a column standing on it and a bad row."""
    path = tmp_path / "frame.csv"
    path.write_text(
        "Name,Block,Group,Start,End,Size,Grade,Orientation\n"
        "B1,BLK,G1,X 0mm Y 0mm Z 0mm,X 2000mm Y 0mm Z 0mm,BEAM_200x8x300x12,AH36,0 0 1\n"
        "C1,BLK,G1,X 1000mm Y 0mm Z 0mm,X 1000mm Y 0mm Z 1500mm,ANG_65x65x6,AH36,1 0 0\n"
        "BAD,BLK,G1,X 0mm Y 0mm,X 1mm Y 0mm Z 0mm,ANG_65x65x6,AH36,0 0 1\n",
        encoding="utf-8",
    )
    return path
