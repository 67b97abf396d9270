"""
Tests for splitting elements at existing nodes on their span.
"""

import pytest

from conftest import build_context, element_table
from framemesh.core.data_models import ElementMeta
from framemesh.fem.modifiers.split_by_nodes import (
    SplitByNodesOptions,
    apply_element_splits,
    split_elements_by_existing_nodes,
)

OPTIONS = SplitByNodesOptions(distance_tol=1.0)


def beam_with_node(node_xyz):
    # Beam 1-2 along X with a loose node 3
    return build_context({1: (0, 0, 0), 2: (100, 0, 0), 3: node_xyz}, {1: (1, 2)})


class TestSplitByExistingNodes:
    """Hidden junctions become shared nodes."""

    def test_mid_span_node_splits_element(self):
        ctx = beam_with_node((50, 0.2, 0))
        result = split_elements_by_existing_nodes(ctx, OPTIONS)
        assert element_table(ctx) == {1: (1, 3), 2: (3, 2)}
        assert result.elements_need_split == 1
        assert result.elements_split == 1
        assert result.elements_added == 1
        assert result.elements_scanned == 1

    def test_rerun_is_noop(self):
        ctx = beam_with_node((50, 0.2, 0))
        split_elements_by_existing_nodes(ctx, OPTIONS)
        before = element_table(ctx)
        result = split_elements_by_existing_nodes(ctx, OPTIONS)
        assert result.elements_need_split == 0
        assert element_table(ctx) == before

    def test_node_off_the_line_is_ignored(self):
        ctx = beam_with_node((50, 5, 0))
        split_elements_by_existing_nodes(ctx, OPTIONS)
        assert element_table(ctx) == {1: (1, 2)}

    def test_node_beyond_the_end_is_ignored(self):
        ctx = beam_with_node((100.5, 0, 0))
        split_elements_by_existing_nodes(ctx, OPTIONS)
        assert element_table(ctx) == {1: (1, 2)}

    def test_several_nodes_ordered_along_axis(self):
        ctx = build_context(
            {1: (0, 0, 0), 2: (100, 0, 0), 3: (75, 0, 0), 4: (25, 0, 0)},
            {1: (1, 2)},
        )
        result = split_elements_by_existing_nodes(ctx, OPTIONS)
        assert element_table(ctx) == {1: (1, 4), 2: (4, 3), 3: (3, 2)}
        assert result.elements_added == 2

    def test_near_duplicate_hits_keep_closest_to_line(self):
        ctx = build_context(
            {1: (0, 0, 0), 2: (100, 0, 0), 3: (50, 0.3, 0), 4: (50.02, 0.1, 0)},
            {1: (1, 2)},
        )
        split_elements_by_existing_nodes(ctx, OPTIONS)
        assert ctx.elements[1].node_ids == (1, 4)

    def test_fragments_keep_metadata_and_property(self):
        ctx = beam_with_node((50, 0, 0))
        meta = ElementMeta(origin_type="BEAM", source_name="B1")
        ctx.elements.add_with_id(1, 1, 2, 1, meta)
        split_elements_by_existing_nodes(ctx, OPTIONS)
        for eid in ctx.elements.ids():
            assert ctx.elements[eid].meta == meta
            assert ctx.elements[eid].property_id == 1

    def test_invalid_options(self):
        with pytest.raises(ValueError):
            SplitByNodesOptions(distance_tol=-1.0)
        with pytest.raises(ValueError):
            SplitByNodesOptions(grid_cell_size=0.0)


class TestApplyElementSplits:
    """Chain rewrite shared by the split modifiers."""

    def test_endpoints_and_repeats_ignored(self):
        ctx = beam_with_node((50, 0, 0))
        result = apply_element_splits(ctx, {1: [3, 3, 1, 2]})
        assert element_table(ctx) == {1: (1, 3), 2: (3, 2)}
        assert result.elements_split == 1

    def test_short_link_dropped(self):
        ctx = beam_with_node((1e-7, 0, 0))
        apply_element_splits(ctx, {1: [3]})
        assert element_table(ctx) == {1: (3, 2)}

    def test_element_without_links_removed(self):
        ctx = build_context({1: (0, 0, 0), 2: (1.5e-6, 0, 0), 3: (0.75e-6, 0, 0)}, {1: (1, 2)})
        result = apply_element_splits(ctx, {1: [3]})
        assert 1 not in ctx.elements
        assert result.elements_removed == 1
