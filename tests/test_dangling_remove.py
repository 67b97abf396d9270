"""
Tests for short dangling stub removal.
"""

import pytest

from conftest import build_context, element_table
from framemesh.fem.modifiers.dangling_remove import (
    DanglingRemoveOptions,
    remove_dangling_short_elements,
)


def frame_with_stubs():
    # Long beam 1-2; short stub 2-3 (30 long); long post 2-4 (200 long)
    return build_context(
        {1: (0, 0, 0), 2: (1000, 0, 0), 3: (1000, 30, 0), 4: (1000, 0, 200)},
        {1: (1, 2), 2: (2, 3), 3: (2, 4)},
    )


def test_short_stub_with_free_end_removed():
    ctx = frame_with_stubs()
    result = remove_dangling_short_elements(ctx, DanglingRemoveOptions(length_threshold=50.0))
    assert result.removed_ids == [2]
    assert result.elements_removed == 1
    assert result.elements_checked == 3
    assert element_table(ctx) == {1: (1, 2), 3: (2, 4)}


def test_short_element_between_junctions_kept():
    ctx = build_context(
        {1: (0, 0, 0), 2: (1000, 0, 0), 3: (1020, 0, 0), 4: (2000, 0, 0),
         5: (1000, 500, 0), 6: (1020, 500, 0)},
        {1: (1, 2), 2: (2, 3), 3: (3, 4), 4: (2, 5), 5: (3, 6)},
    )
    result = remove_dangling_short_elements(ctx)
    assert result.removed_ids == []
    assert 2 in ctx.elements


def test_nodes_are_not_deleted():
    ctx = frame_with_stubs()
    remove_dangling_short_elements(ctx)
    assert 3 in ctx.nodes


def test_negative_threshold_rejected():
    with pytest.raises(ValueError):
        DanglingRemoveOptions(length_threshold=-1.0)
