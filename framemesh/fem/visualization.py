"""
Plotly previews of the line model.

Elements are drawn per section shape as line traces, free ends as
markers and rigid links as dashed lines, so each pipeline stage can be
inspected in a browser.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import plotly.graph_objects as go

from framemesh.fem.connectivity import build_node_degree, find_connected_element_groups
from framemesh.fem.fem_model import FEModelContext

COLORS = {
    "L": "#3B82F6",        # Blue
    "H": "#EF4444",        # Red
    "CHAN": "#F59E0B",     # Amber
    "BAR": "#10B981",      # Green
    "ROD": "#6366F1",      # Indigo
    "TUBE": "#EC4899",     # Pink
    "unknown": "#9CA3AF",  # Grey
    "free_end": "#F97316", # Orange
    "rigid": "#111827",    # Near black
}


def _shape_name(context: FEModelContext, element_id: int) -> str:
    prop = context.properties.get(context.elements[element_id].property_id)
    return prop.shape.value if prop is not None else "unknown"


def create_model_figure(context: FEModelContext, free_end_nodes: Optional[Sequence[int]] = None,
                        title: str = "Model", line_width: int = 3) -> go.Figure:
    """Build a 3D figure of elements, free ends and rigid links.

    Args:
        context: Model to draw
        free_end_nodes: Nodes highlighted as free ends
        title: Figure title
        line_width: Element line width

    Returns:
        Plotly Figure.
    """
    fig = go.Figure()

    # One trace per shape; None separates segments
    traces: Dict[str, Dict[str, List[Optional[float]]]] = {}
    for eid in context.elements.ids():
        if not context.element_has_nodes(eid):
            continue
        a, b = context.element_points(eid)
        coords = traces.setdefault(_shape_name(context, eid), {"x": [], "y": [], "z": []})
        coords["x"].extend([a.x, b.x, None])
        coords["y"].extend([a.y, b.y, None])
        coords["z"].extend([a.z, b.z, None])

    for shape, coords in sorted(traces.items()):
        fig.add_trace(go.Scatter3d(
            x=coords["x"], y=coords["y"], z=coords["z"],
            mode='lines',
            line=dict(color=COLORS.get(shape, COLORS["unknown"]), width=line_width),
            name=f"{shape} members",
            hoverinfo='skip',
        ))

    free = [n for n in (free_end_nodes or []) if n in context.nodes]
    if free:
        pts = [context.nodes[n] for n in free]
        fig.add_trace(go.Scatter3d(
            x=[p.x for p in pts], y=[p.y for p in pts], z=[p.z for p in pts],
            mode='markers',
            marker=dict(color=COLORS["free_end"], size=4),
            name='Free ends',
            text=[f"Node {n}" for n in free],
            hoverinfo='text',
        ))

    rx: List[Optional[float]] = []
    ry: List[Optional[float]] = []
    rz: List[Optional[float]] = []
    for rid in context.rigids.ids():
        rigid = context.rigids[rid]
        if rigid.independent_node not in context.nodes:
            continue
        m = context.nodes[rigid.independent_node]
        for dep in rigid.dependent_nodes:
            if dep not in context.nodes:
                continue
            d = context.nodes[dep]
            rx.extend([m.x, d.x, None])
            ry.extend([m.y, d.y, None])
            rz.extend([m.z, d.z, None])
    if rx:
        fig.add_trace(go.Scatter3d(
            x=rx, y=ry, z=rz,
            mode='lines',
            line=dict(color=COLORS["rigid"], width=line_width, dash='dash'),
            name='RBE2 links',
        ))

    fig.update_layout(
        title=title,
        scene=dict(aspectmode='data'),
        legend=dict(itemsizing='constant'),
        margin=dict(l=0, r=0, t=40, b=0),
    )
    return fig


def write_figure_html(fig: go.Figure, path: Union[str, Path]) -> Path:
    """Write a standalone HTML file loading plotly.js from the CDN."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.write_html(str(path), include_plotlyjs='cdn')
    return path


def get_model_statistics(context: FEModelContext) -> Dict[str, Any]:
    """Summary counts and bounding box of the model.

    Returns:
        Dictionary with node/element/property/material/rigid counts,
        connected group and free end counts, elements per shape and
        the coordinate bounding box.
    """
    if len(context.nodes):
        pts = [context.nodes[n] for n in context.nodes.ids()]
        bbox = {
            "x_min": min(p.x for p in pts),
            "x_max": max(p.x for p in pts),
            "y_min": min(p.y for p in pts),
            "y_max": max(p.y for p in pts),
            "z_min": min(p.z for p in pts),
            "z_max": max(p.z for p in pts),
        }
    else:
        bbox = {k: 0.0 for k in ["x_min", "x_max", "y_min", "y_max", "z_min", "z_max"]}

    per_shape: Dict[str, int] = {}
    for eid in context.elements.ids():
        shape = _shape_name(context, eid)
        per_shape[shape] = per_shape.get(shape, 0) + 1

    degree = build_node_degree(context)
    return {
        "n_nodes": len(context.nodes),
        "n_elements": len(context.elements),
        "n_properties": len(context.properties),
        "n_materials": len(context.materials),
        "n_rigids": len(context.rigids),
        "n_groups": len(find_connected_element_groups(context.elements)),
        "n_free_ends": sum(1 for d in degree.values() if d == 1),
        "elements_by_shape": per_shape,
        "bounding_box": bbox,
    }
