"""
Build the raw finite-element model from parsed members.

Each member becomes one two-node element. Coincident member ends share
a node, identical sections share a property, and every member uses the
same structural steel material.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional, Tuple, Union

from framemesh.core.constants import (
    STEEL_DENSITY,
    STEEL_ELASTIC_MODULUS,
    STEEL_NAME,
    STEEL_POISSON_RATIO,
)
from framemesh.core.data_models import MEMBER_SHAPES, ElementMeta, MemberType, RawMember
from framemesh.fem.fem_model import FEModelContext
from framemesh.fem.member_parser import parse_member_csv

logger = logging.getLogger(__name__)

DimsMapper = Callable[[Tuple[float, ...]], Tuple[float, ...]]


def _angle_dims(d: Tuple[float, ...]) -> Tuple[float, ...]:
    # [width, height, thickness]
    return (d[0], d[1], d[2], d[2])


def _beam_dims(d: Tuple[float, ...]) -> Tuple[float, ...]:
    # [width, web thickness, height, flange thickness]
    width, web, height, flange = d[:4]
    return (width - 2.0 * flange, 2.0 * flange, height, web)


def _channel_dims(d: Tuple[float, ...]) -> Tuple[float, ...]:
    # [height, width, web thickness, flange thickness]
    height, width, web, flange = d[:4]
    return (width, height, web, flange)


def _bulb_dims(d: Tuple[float, ...]) -> Tuple[float, ...]:
    return (d[0], d[1])


def _rod_dims(d: Tuple[float, ...]) -> Tuple[float, ...]:
    return (round(d[0] / 2.0, 1),)


def _tube_dims(d: Tuple[float, ...]) -> Tuple[float, ...]:
    # [outer diameter, wall thickness] -> [outer radius, inner radius]
    outer = d[0] / 2.0
    return (outer, outer - d[1])


# Member type -> (minimum dims in size text, PBEAML dims, raw type label)
DIMENSION_RULES: Dict[MemberType, Tuple[int, DimsMapper, str]] = {
    MemberType.ANG: (3, _angle_dims, "ANGLE"),
    MemberType.BEAM: (4, _beam_dims, "BEAM"),
    MemberType.BSC: (4, _channel_dims, "BSC"),
    MemberType.BULB: (2, _bulb_dims, "BULB"),
    MemberType.RBAR: (1, _rod_dims, "RBAR"),
    MemberType.TUBE: (2, _tube_dims, "TUBE"),
}


@dataclass(frozen=True)
class ModelBuilderOptions:
    """Options for raw model construction.

    Attributes:
        min_member_length: Members shorter than this are skipped
        material_name: Shared material name
        elastic_modulus: Young's modulus (N/mm2)
        poisson_ratio: Poisson's ratio
        density: Mass density (tonne/mm3)
    """
    min_member_length: float = 1e-6
    material_name: str = STEEL_NAME
    elastic_modulus: float = STEEL_ELASTIC_MODULUS
    poisson_ratio: float = STEEL_POISSON_RATIO
    density: float = STEEL_DENSITY

    def __post_init__(self):
        if self.min_member_length < 0:
            raise ValueError(f"min_member_length must be >= 0, got {self.min_member_length}")


@dataclass
class BuildSummary:
    members_read: int = 0
    elements_created: int = 0
    skipped_unknown: int = 0
    skipped_dims: int = 0
    skipped_short: int = 0


def build_fe_model(members: Iterable[RawMember],
                   options: Optional[ModelBuilderOptions] = None,
                   context: Optional[FEModelContext] = None) -> FEModelContext:
    """Create nodes, properties, the material and one element per member.

    Args:
        members: Parsed members
        options: Material and filtering options
        context: Existing model to add to (a new one if None)

    Returns:
        The populated FEModelContext.
    """
    options = options or ModelBuilderOptions()
    context = context if context is not None else FEModelContext()
    summary = BuildSummary()

    material_id = context.materials.add_or_get(
        options.material_name, options.elastic_modulus, options.poisson_ratio, options.density
    )

    for member in members:
        summary.members_read += 1
        rule = DIMENSION_RULES.get(member.member_type)
        if rule is None:
            summary.skipped_unknown += 1
            logger.warning(f"Member '{member.name}': unsupported size '{member.size_text}', skipped")
            continue
        min_dims, mapper, raw_type = rule
        if len(member.dims) < min_dims:
            summary.skipped_dims += 1
            logger.warning(f"Member '{member.name}': size '{member.size_text}' needs "
                           f"{min_dims} dimensions, skipped")
            continue
        if member.length < options.min_member_length:
            summary.skipped_short += 1
            logger.warning(f"Member '{member.name}': zero length, skipped")
            continue

        shape = MEMBER_SHAPES[member.member_type]
        property_id = context.properties.add_or_get(shape, mapper(member.dims), material_id)
        n1 = context.nodes.add_or_get(*member.start)
        n2 = context.nodes.add_or_get(*member.end)
        meta = ElementMeta(
            origin_type=raw_type,
            fe_type=shape.value,
            source_name=member.name,
            orientation=member.orientation,
        )
        context.elements.add_new(n1, n2, property_id, meta)
        summary.elements_created += 1

    logger.info(
        f"Built raw model: {summary.elements_created} elements from {summary.members_read} members, "
        f"{len(context.nodes)} nodes, {len(context.properties)} properties "
        f"(skipped: unknown={summary.skipped_unknown}, dims={summary.skipped_dims}, "
        f"short={summary.skipped_short})"
    )
    return context


def load_and_build(csv_path: Union[str, Path],
                   options: Optional[ModelBuilderOptions] = None) -> FEModelContext:
    """Parse a member CSV and build its raw model.

    Raises:
        FileNotFoundError: If the CSV does not exist
    """
    return build_fe_model(parse_member_csv(csv_path), options)
