"""
Tests for collapsing tiny elements into one node.
"""

import pytest

from conftest import build_context, element_table
from framemesh.fem.modifiers.short_collapse import ShortCollapseOptions, collapse_short_elements


def chain_with_tiny_link():
    # P(1) - Q(2) is 0.001 long, Q(2) - R(3) is 100 long
    return build_context(
        {1: (0, 0, 0), 2: (0.001, 0, 0), 3: (100, 0, 0)},
        {1: (1, 2), 2: (2, 3)},
    )


class TestShortCollapse:
    def test_tiny_element_collapsed(self):
        ctx = chain_with_tiny_link()
        result = collapse_short_elements(ctx, ShortCollapseOptions(tolerance=1.0))
        assert result.collapsed_ids == [1]
        assert result.nodes_removed == 1
        assert 2 not in ctx.nodes
        assert element_table(ctx) == {2: (1, 3)}

    def test_second_run_is_noop(self):
        ctx = chain_with_tiny_link()
        collapse_short_elements(ctx)
        before = element_table(ctx)
        result = collapse_short_elements(ctx)
        assert result.elements_collapsed == 0
        assert element_table(ctx) == before

    def test_duplicate_short_element_becomes_degenerate(self):
        ctx = chain_with_tiny_link()
        ctx.elements.add_with_id(3, 2, 1, 1)
        result = collapse_short_elements(ctx)
        assert result.collapsed_ids == [1]
        assert result.degenerate_ids == [3]
        assert element_table(ctx) == {2: (1, 3)}

    def test_long_elements_untouched(self):
        ctx = build_context({1: (0, 0, 0), 2: (5, 0, 0)}, {1: (1, 2)})
        result = collapse_short_elements(ctx, ShortCollapseOptions(tolerance=1.0))
        assert result.elements_collapsed == 0
        assert element_table(ctx) == {1: (1, 2)}

    def test_negative_tolerance_rejected(self):
        with pytest.raises(ValueError):
            ShortCollapseOptions(tolerance=-0.5)
