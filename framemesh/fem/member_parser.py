"""
Member table parser.

Reads the exported member CSV into RawMember records. The first row is
a header. Columns used (0-based): 0 name, 3 start position, 4 end
position, 5 size text (e.g. "ANG_65x65x6"), 7 orientation vector.
Positions and vectors are free text; every number in them is taken in
order, so "X 100mm Y -20.5mm Z 3000mm" reads as (100, -20.5, 3000).
"""

import logging
import re
from pathlib import Path
from typing import List, Optional, Tuple, Union

import pandas as pd

from framemesh.core.data_models import MemberType, RawMember

logger = logging.getLogger(__name__)

NUMBER_PATTERN = re.compile(r"[-+]?\d+(?:\.\d+)?")
SIZE_TYPE_PATTERN = re.compile(r"^([A-Z]+)_", re.IGNORECASE)

COL_NAME = 0
COL_START = 3
COL_END = 4
COL_SIZE = 5
COL_ORIENTATION = 7


def extract_numbers(text: str) -> List[float]:
    """All numbers found in text, in order."""
    return [float(m) for m in NUMBER_PATTERN.findall(text or "")]


def parse_size_text(size_text: str) -> Tuple[MemberType, Tuple[float, ...]]:
    """Split size text such as "BEAM_200x8x300x12" into type and dimensions.

    Size text without a TYPE_ prefix yields (UNKNOWN, ()).
    """
    upper = (size_text or "").strip().upper()
    match = SIZE_TYPE_PATTERN.match(upper)
    if not match:
        return MemberType.UNKNOWN, ()
    return MemberType.from_code(match.group(1)), tuple(extract_numbers(upper))


def _parse_row(row: List[str]) -> Optional[RawMember]:
    start = extract_numbers(row[COL_START])
    end = extract_numbers(row[COL_END])
    orientation = extract_numbers(row[COL_ORIENTATION])
    if len(start) < 3 or len(end) < 3 or len(orientation) < 3:
        return None
    size_text = row[COL_SIZE].strip()
    member_type, dims = parse_size_text(size_text)
    return RawMember(
        name=row[COL_NAME].strip(),
        member_type=member_type,
        size_text=size_text,
        dims=dims,
        start=tuple(start[:3]),
        end=tuple(end[:3]),
        orientation=tuple(orientation[:3]),
    )


def parse_member_csv(path: Union[str, Path]) -> List[RawMember]:
    """Parse the member table.

    Args:
        path: CSV file path

    Returns:
        Parsed members in file order. Rows missing a coordinate or
        orientation component are skipped with a warning.

    Raises:
        FileNotFoundError: If the file does not exist
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Member CSV not found: {path}")

    df = pd.read_csv(path, header=0, dtype=str, keep_default_na=False,
                     skip_blank_lines=True, on_bad_lines="warn")
    if df.shape[1] <= COL_ORIENTATION:
        logger.warning(f"{path.name}: expected at least {COL_ORIENTATION + 1} columns, "
                       f"found {df.shape[1]}; no members read")
        return []

    members: List[RawMember] = []
    skipped = 0
    for line_no, values in enumerate(df.itertuples(index=False, name=None), start=2):
        member = _parse_row([str(v) for v in values])
        if member is None:
            skipped += 1
            logger.warning(f"{path.name}:{line_no}: incomplete position or orientation, row skipped")
            continue
        members.append(member)

    counts = pd.Series([m.member_type.value for m in members], dtype=object).value_counts()
    logger.info(f"Parsed {len(members)} members from {path.name} ({skipped} skipped): "
                f"{counts.to_dict()}")
    return members
