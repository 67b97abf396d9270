"""
Nastran bulk data (BDF) export.

The model is translated into a pyNastran BDF deck (GRID, CBEAM, PBEAML,
MAT1, RBE2, SPC and GRAV cards under a SOL 101 executive and a single
static subcase) and written in small-field format.
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

from pyNastran.bdf.bdf import BDF
from pyNastran.bdf.case_control_deck import CaseControlDeck

from framemesh.fem.fem_model import FEModelContext
from framemesh.fem.visualization import create_model_figure, write_figure_html

logger = logging.getLogger(__name__)

SPC_SET_ID = 1
SPC_DOF = "123456"
LOAD_SET_ID = 2
GRAVITY = 9800.0
DEFAULT_ORIENTATION = (0.0, 0.0, 1.0)

CASE_CONTROL = [
    "DISPLACEMENT = ALL",
    "FORCE = ALL",
    "SPCFORCES = ALL",
    "STRESS = ALL",
    "SUBCASE 1",
    "  LABEL = LC1",
    f"  SPC = {SPC_SET_ID}",
    f"  LOAD = {LOAD_SET_ID}",
]


class BdfWriter:
    """Builds the BDF deck of one model.

    Args:
        context: Model to export
        spc_nodes: Nodes restrained in all six DOFs (SPC set 1)
        sol: Nastran solution sequence
    """

    def __init__(self, context: FEModelContext, spc_nodes: Optional[Sequence[int]] = None,
                 sol: int = 101):
        self.context = context
        self.spc_nodes = list(spc_nodes or [])
        self.sol = sol

    def build_model(self) -> BDF:
        """Translate the context into a pyNastran BDF object."""
        model = BDF(debug=None)
        model.sol = self.sol
        model.executive_control_lines = [f"SOL {self.sol}", "CEND"]
        model.case_control_deck = CaseControlDeck(list(CASE_CONTROL), log=model.log)
        model.add_param("POST", [-1])

        self._nodes_and_elements(model)
        self._properties_and_materials(model)
        self._rigid_elements(model)
        self._boundary_conditions(model)
        model.add_grav(LOAD_SET_ID, GRAVITY, [0.0, 0.0, -1.0])
        return model

    def write(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.build_model().write_bdf(str(path), size=8, is_double=False, enddata=True)
        logger.info(f"BDF written: {path} ({len(self.context.nodes)} GRID, "
                    f"{len(self.context.elements)} CBEAM, {len(self.context.rigids)} RBE2, "
                    f"{len(self.spc_nodes)} SPC)")
        return path

    def _nodes_and_elements(self, model: BDF) -> None:
        for node_id in self.context.nodes.ids():
            model.add_grid(node_id, list(self.context.nodes[node_id].as_tuple()))
        for eid in self.context.elements.ids():
            element = self.context.elements[eid]
            orientation = [float(v) for v in (element.meta.orientation or DEFAULT_ORIENTATION)]
            model.add_cbeam(eid, element.property_id, [element.start, element.end],
                            orientation, None, offt="BGG")

    def _properties_and_materials(self, model: BDF) -> None:
        for prop_id in self.context.properties.ids():
            prop = self.context.properties[prop_id]
            model.add_pbeaml(prop_id, prop.material_id, prop.shape.value, [0.0],
                             [[float(d) for d in prop.dims]])
        for mat_id in self.context.materials.ids():
            mat = self.context.materials[mat_id]
            model.add_mat1(mat_id, mat.elastic_modulus, None, mat.poisson_ratio, rho=mat.density,
                           comment=mat.name)

    def _rigid_elements(self, model: BDF) -> None:
        for rid in self.context.rigids.ids():
            rigid = self.context.rigids[rid]
            model.add_rbe2(rid, rigid.independent_node, rigid.dof, list(rigid.dependent_nodes))

    def _boundary_conditions(self, model: BDF) -> None:
        for node_id in self.spc_nodes:
            model.add_spc(SPC_SET_ID, [node_id], [SPC_DOF], [0.0])


def export_bdf(context: FEModelContext, path: Union[str, Path],
               spc_nodes: Optional[Sequence[int]] = None, sol: int = 101) -> Path:
    """Write the model to a BDF file."""
    return BdfWriter(context, spc_nodes, sol).write(path)


class BdfSnapshotExporter:
    """Pipeline snapshot exporter writing <base>_<label>.bdf per stage.

    Free ends passed by the pipeline become SPC records. With
    write_html, a Plotly preview <base>_<label>.html is written too.

    Args:
        output_dir: Directory for snapshot files
        base_name: File name prefix
        write_html: Also write an HTML preview per stage
        sol: Nastran solution sequence
    """

    def __init__(self, output_dir: Union[str, Path], base_name: str,
                 write_html: bool = False, sol: int = 101):
        self.output_dir = Path(output_dir)
        self.base_name = base_name
        self.write_html = write_html
        self.sol = sol
        self.written: List[Path] = []

    def __call__(self, context: FEModelContext, label: str, free_end_nodes: List[int]) -> None:
        path = self.output_dir / f"{self.base_name}_{label}.bdf"
        self.written.append(export_bdf(context, path, free_end_nodes, self.sol))
        if self.write_html:
            fig = create_model_figure(context, free_end_nodes, title=f"{self.base_name} {label}")
            self.written.append(write_figure_html(fig, self.output_dir / f"{self.base_name}_{label}.html"))
