"""
Tests for extending free ends onto nearby members.
"""

import pytest

from conftest import build_context, element_table
from framemesh.fem.connectivity import find_connected_element_groups
from framemesh.fem.geometry import Point3D
from framemesh.fem.modifiers.extend_to_intersect import (
    ExtendOptions,
    FreeEndExtender,
    extend_free_ends,
)
from framemesh.fem.modifiers.split_by_nodes import (
    SplitByNodesOptions,
    split_elements_by_existing_nodes,
)

# Sections are 40 wide, so the search radius is 40 + 20 = 60
OPTIONS = ExtendOptions(extra_margin=20.0)


def tee_short_of_post(gap):
    # Beam 1-2 along X stops `gap` short of a post 3-4 running along Y
    return build_context(
        {1: (0, 0, 0), 2: (100 - gap, 0, 0), 3: (100, -200, 0), 4: (100, 200, 0)},
        {1: (1, 2), 2: (3, 4)},
    )


def two_posts_ahead():
    return build_context(
        {1: (0, 0, 0), 2: (90, 0, 0),
         3: (100, -200, 0), 4: (100, 200, 0),
         5: (130, -200, 0), 6: (130, 200, 0)},
        {1: (1, 2), 2: (3, 4), 3: (5, 6)},
    )


class TestFreeEndExtension:
    """Ray casting from free ends."""

    def test_free_end_moved_onto_crossing_member(self):
        ctx = tee_short_of_post(10)
        result = extend_free_ends(ctx, OPTIONS)

        assert result.nodes_moved == 1
        assert result.nodes_merged == 0
        node_id, old, new = result.moves[0]
        assert node_id == 2
        assert old == Point3D(90.0, 0.0, 0.0)
        assert ctx.nodes[2].x == pytest.approx(100.0)
        assert ctx.nodes[2].y == pytest.approx(0.0)

    def test_split_after_extension_connects_members(self):
        ctx = tee_short_of_post(10)
        extend_free_ends(ctx, OPTIONS)
        split_elements_by_existing_nodes(ctx, SplitByNodesOptions(distance_tol=1.0))
        assert len(find_connected_element_groups(ctx.elements)) == 1

    def test_gap_beyond_radius_untouched(self):
        ctx = tee_short_of_post(80)
        result = extend_free_ends(ctx, OPTIONS)
        assert result.total_changes == 0
        assert result.passes == 1
        assert ctx.nodes[2] == Point3D(20.0, 0.0, 0.0)

    def test_collinear_gap_merges_into_target_endpoint(self):
        # A(1)-B(2) and C(3)-D(4) on one line with a 50 gap between B and C
        ctx = build_context(
            {1: (0, 0, 0), 2: (50, 0, 0), 3: (100, 0, 0), 4: (150, 0, 0)},
            {1: (1, 2), 2: (3, 4)},
        )
        result = extend_free_ends(ctx, OPTIONS)

        assert result.nodes_merged == 1
        assert 2 not in ctx.nodes
        assert element_table(ctx) == {1: (1, 3), 2: (3, 4)}
        assert len(find_connected_element_groups(ctx.elements)) == 1

    def test_connected_free_end_is_not_extended_backwards(self):
        ctx = tee_short_of_post(10)
        result = extend_free_ends(ctx, OPTIONS)
        moved = {node_id for node_id, _, _ in result.moves}
        assert moved == {2}
        assert ctx.nodes[1] == Point3D(0.0, 0.0, 0.0)

    def test_stops_when_nothing_moves(self):
        ctx = tee_short_of_post(10)
        result = FreeEndExtender(ctx, ExtendOptions(extra_margin=20.0, max_passes=5)).run()
        assert result.passes == 2
        assert result.passes <= 5

    def test_settles_on_nearest_of_two_posts(self):
        # Beam 1-2 stops 10 short of post 3-4; a second post 5-6 stands 30 further on
        ctx = two_posts_ahead()
        result = FreeEndExtender(ctx, OPTIONS).run()

        assert [node_id for node_id, _, _ in result.moves] == [2]
        assert result.passes == 2
        assert ctx.nodes[2].x == pytest.approx(100.0)
        assert ctx.nodes[2].y == pytest.approx(0.0)

    def test_free_end_lying_on_element_is_left_for_split(self):
        ctx = two_posts_ahead()
        ctx.nodes.move(2, Point3D(100.0, 0.0, 0.0))
        result = extend_free_ends(ctx, OPTIONS)
        assert result.total_changes == 0
        assert ctx.nodes[2] == Point3D(100.0, 0.0, 0.0)

    def test_invalid_options(self):
        with pytest.raises(ValueError):
            ExtendOptions(max_passes=0)
        with pytest.raises(ValueError):
            ExtendOptions(extra_margin=-1.0)
