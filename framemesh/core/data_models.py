"""
Input records and element metadata shared by the parser, the model
builder and the healing algorithms.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

Vector3 = Tuple[float, float, float]


class SectionShape(Enum):
    """Finite-element cross-section shapes (Nastran PBEAML types)."""
    L = "L"
    H = "H"
    CHAN = "CHAN"
    BAR = "BAR"
    ROD = "ROD"
    TUBE = "TUBE"


class MemberType(Enum):
    """Member type codes found in the size text of the input table."""
    ANG = "ANG"      # Angle
    BEAM = "BEAM"    # Rolled H / I beam
    BSC = "BSC"      # Channel
    BULB = "BULB"    # Bulb flat
    RBAR = "RBAR"    # Round bar
    TUBE = "TUBE"    # Circular tube
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_code(cls, code: str) -> "MemberType":
        try:
            return cls(code.strip().upper())
        except ValueError:
            return cls.UNKNOWN


# Member type -> finite-element section shape
MEMBER_SHAPES = {
    MemberType.ANG: SectionShape.L,
    MemberType.BEAM: SectionShape.H,
    MemberType.BSC: SectionShape.CHAN,
    MemberType.BULB: SectionShape.BAR,
    MemberType.RBAR: SectionShape.ROD,
    MemberType.TUBE: SectionShape.TUBE,
}


@dataclass
class RawMember:
    """One structural member read from the input table.

    Attributes:
        name: Member name from the source model
        member_type: Type code parsed from the size text
        size_text: Raw size text, e.g. "ANG_65x65x6"
        dims: Numbers found in the size text, in order
        start: Start position (x, y, z)
        end: End position (x, y, z)
        orientation: Local orientation vector (x, y, z)
    """
    name: str
    member_type: MemberType
    size_text: str
    dims: Tuple[float, ...]
    start: Vector3
    end: Vector3
    orientation: Vector3

    @property
    def length(self) -> float:
        dx = self.end[0] - self.start[0]
        dy = self.end[1] - self.start[1]
        dz = self.end[2] - self.start[2]
        return (dx * dx + dy * dy + dz * dz) ** 0.5


@dataclass(frozen=True)
class ElementMeta:
    """Optional metadata carried by every element.

    Frozen so split fragments can share the same instance.

    Attributes:
        origin_type: Member type code of the source member (e.g. "ANG")
        fe_type: Finite-element shape name (e.g. "L")
        source_name: Name of the source member
        orientation: Orientation vector override for export
    """
    origin_type: Optional[str] = None
    fe_type: Optional[str] = None
    source_name: Optional[str] = None
    orientation: Optional[Vector3] = None
