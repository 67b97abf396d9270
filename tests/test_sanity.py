"""
Tests for the read-only inspections and the composite sanity check.
"""

import logging

import pytest

from conftest import build_context, element_table
from framemesh.fem.inspectors import (
    find_coincident_node_groups,
    find_duplicate_elements,
    find_invalid_elements,
    find_isolated_elements,
    find_orphan_nodes,
    find_short_elements,
)
from framemesh.fem.sanity import SanityOptions, inspect_model


class TestInspectors:
    """Each inspection reports without modifying the model."""

    def test_short_elements(self):
        ctx = build_context({1: (0, 0, 0), 2: (0.5, 0, 0), 3: (10, 0, 0)}, {1: (1, 2), 2: (2, 3)})
        short = find_short_elements(ctx, 1.0)
        assert [eid for eid, _ in short] == [1]
        assert short[0][1] == pytest.approx(0.5)

    def test_coincident_groups(self):
        ctx = build_context(
            {1: (0, 0, 0), 2: (0.05, 0, 0), 3: (100, 0, 0), 4: (0.05, 100, 0)},
            {1: (1, 3), 2: (2, 4)},
        )
        assert find_coincident_node_groups(ctx, 0.1) == [[1, 2]]
        assert find_coincident_node_groups(ctx, 0.01) == []

    def test_duplicate_elements_in_either_order(self):
        ctx = build_context({1: (0, 0, 0), 2: (1, 0, 0), 3: (2, 0, 0)},
                            {1: (1, 2), 2: (2, 1), 3: (2, 3)})
        assert find_duplicate_elements(ctx) == [[1, 2]]

    def test_invalid_references(self):
        ctx = build_context({1: (0, 0, 0), 2: (1, 0, 0)}, {1: (1, 2), 2: (1, 99)})
        ctx.elements.add_with_id(3, 1, 2, 42)
        invalid = find_invalid_elements(ctx)
        assert set(invalid) == {2, 3}
        assert "missing node" in invalid[2]
        assert "missing property" in invalid[3]
        assert len(ctx.elements) == 3

    def test_orphans_exclude_rigid_nodes(self):
        ctx = build_context({1: (0, 0, 0), 2: (1, 0, 0), 3: (5, 5, 5), 4: (6, 6, 6)}, {1: (1, 2)})
        ctx.rigids.add_new(3, [1])
        assert find_orphan_nodes(ctx) == [4]

    def test_isolated_elements(self):
        ctx = build_context(
            {1: (0, 0, 0), 2: (1, 0, 0), 3: (2, 0, 0), 4: (0, 9, 0), 5: (1, 9, 0)},
            {1: (1, 2), 2: (2, 3), 3: (4, 5)},
        )
        assert find_isolated_elements(ctx) == [3]


class TestInspectModel:
    """Composite inspection with repairs."""

    def test_clean_model(self):
        ctx = build_context({1: (0, 0, 0), 2: (10, 0, 0)}, {1: (1, 2)})
        report = inspect_model(ctx, label="STAGE_00")
        assert report.group_count == 1
        assert report.free_end_nodes == [1, 2]
        assert report.is_clean
        assert report.label == "STAGE_00"

    def test_orphans_removed(self):
        ctx = build_context({1: (0, 0, 0), 2: (10, 0, 0), 99: (50, 50, 50)}, {1: (1, 2)})
        report = inspect_model(ctx)
        assert report.orphans_removed == [99]
        assert 99 not in ctx.nodes

    def test_rigid_dependents_are_not_free_ends(self):
        ctx = build_context({1: (0, 0, 0), 2: (10, 0, 0), 3: (10, 5, 0)}, {1: (1, 2)})
        ctx.rigids.add_new(3, [2])
        report = inspect_model(ctx)
        assert report.free_end_nodes == [1]
        assert 3 in ctx.nodes

    def test_broken_elements_removed_and_free_ends_refreshed(self):
        ctx = build_context({1: (0, 0, 0), 2: (10, 0, 0), 3: (20, 0, 0)}, {1: (1, 2)})
        ctx.elements.add_with_id(2, 2, 3, 999)
        report = inspect_model(ctx)

        assert list(report.invalid_removed) == [2]
        assert element_table(ctx) == {1: (1, 2)}
        assert 3 not in ctx.nodes
        assert 3 in report.orphans_removed
        assert report.free_end_nodes == [1, 2]

    def test_findings_reported(self):
        ctx = build_context(
            {1: (0, 0, 0), 2: (0.5, 0, 0), 3: (100, 0, 0), 4: (0, 500, 0), 5: (10, 500, 0)},
            {1: (1, 2), 2: (2, 3), 3: (3, 2), 4: (4, 5)},
        )
        report = inspect_model(ctx, SanityOptions(short_threshold=1.0))
        assert report.group_count == 2
        assert report.short_elements[0][0] == 1
        assert report.duplicate_groups == [[2, 3]]
        assert report.isolated_elements == [4]
        assert not report.is_clean
        assert report.summary()["groups"] == 2

    def test_warnings_logged(self, caplog):
        ctx = build_context(
            {1: (0, 0, 0), 2: (10, 0, 0), 3: (0, 50, 0), 4: (10, 50, 0)},
            {1: (1, 2), 2: (3, 4)},
        )
        with caplog.at_level(logging.WARNING, logger="framemesh.fem.sanity"):
            inspect_model(ctx, label="STAGE_01")
        assert any("disconnected groups" in r.getMessage() for r in caplog.records)
        assert any("[STAGE_01]" in r.getMessage() for r in caplog.records)

    def test_listing_truncated_unless_verbose(self, caplog):
        nodes = {}
        elements = {}
        for i in range(8):
            nodes[2 * i + 1] = (0, 100 * i, 0)
            nodes[2 * i + 2] = (10, 100 * i, 0)
            elements[i + 1] = (2 * i + 1, 2 * i + 2)
        with caplog.at_level(logging.WARNING, logger="framemesh.fem.sanity"):
            inspect_model(build_context(nodes, elements), SanityOptions(listing_limit=3))
        assert any("more)" in r.getMessage() for r in caplog.records)

        caplog.clear()
        with caplog.at_level(logging.WARNING, logger="framemesh.fem.sanity"):
            inspect_model(build_context(nodes, elements), SanityOptions(listing_limit=3), verbose=True)
        assert not any("more)" in r.getMessage() for r in caplog.records)

    def test_invalid_options(self):
        with pytest.raises(ValueError):
            SanityOptions(short_threshold=-1.0)
