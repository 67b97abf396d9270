"""
Tests for the node and element grid hashes.
"""

import pytest

from conftest import build_context
from framemesh.core.constants import MIN_GRID_CELL_SIZE
from framemesh.fem.geometry import BoundingBox, Point3D
from framemesh.fem.spatial_hash import ElementSpatialHash, NodeSpatialHash, suggest_cell_size


@pytest.fixture
def scattered_nodes():
    return build_context({1: (0, 0, 0), 2: (1, 1, 1), 3: (100, 100, 100)}, {})


@pytest.fixture
def three_members():
    return build_context(
        {1: (0, 0, 0), 2: (10, 0, 0), 3: (5, -5, 0), 4: (5, 5, 0),
         5: (100, 100, 0), 6: (110, 100, 0)},
        {1: (1, 2), 2: (3, 4), 3: (5, 6)},
    )


class TestNodeSpatialHash:
    def test_query_near_origin(self, scattered_nodes):
        node_hash = NodeSpatialHash(scattered_nodes, 5.0)
        found = node_hash.query(BoundingBox.from_point(Point3D(0.0, 0.0, 0.0), 2.0))
        assert {1, 2} <= found
        assert 3 not in found
        assert len(node_hash) == 3

    def test_huge_query_box(self, scattered_nodes):
        node_hash = NodeSpatialHash(scattered_nodes, 5.0)
        box = BoundingBox(Point3D(-1e6, -1e6, -1e6), Point3D(1e6, 1e6, 1e6))
        assert node_hash.query(box) == {1, 2, 3}

    def test_cell_size_is_clamped(self, scattered_nodes):
        node_hash = NodeSpatialHash(scattered_nodes, 0.0)
        assert node_hash.cell_size == MIN_GRID_CELL_SIZE


class TestElementSpatialHash:
    def test_candidates_exclude_self_and_far_elements(self, three_members):
        element_hash = ElementSpatialHash(three_members, 5.0)
        candidates = element_hash.query_candidates(1)
        assert 2 in candidates
        assert 1 not in candidates
        assert 3 not in candidates

    def test_query_box(self, three_members):
        element_hash = ElementSpatialHash(three_members, 5.0, inflate=1.0)
        found = element_hash.query_box(BoundingBox.from_point(Point3D(105.0, 100.0, 0.0), 1.0))
        assert found == {3}

    def test_subset_of_elements(self, three_members):
        element_hash = ElementSpatialHash(three_members, 5.0, element_ids=[1, 3])
        assert 2 not in element_hash
        assert 1 in element_hash
        assert element_hash.query_candidates(1) == set()

    def test_oversized_element_is_always_a_candidate(self):
        ctx = build_context(
            {1: (0, 0, 0), 2: (100, 0, 0), 3: (500, 500, 0), 4: (500.01, 500, 0)},
            {1: (1, 2), 2: (3, 4)},
        )
        element_hash = ElementSpatialHash(ctx, 0.01)
        assert 1 in element_hash
        assert 1 in element_hash.query_candidates(2)
        assert 2 in element_hash.query_candidates(1)


def test_suggest_cell_size_is_median_length(three_members):
    # Lengths 10, 10, 10
    assert suggest_cell_size(three_members) == pytest.approx(10.0)


def test_suggest_cell_size_empty_model():
    ctx = build_context({}, {})
    assert suggest_cell_size(ctx, minimum=2.0) == 2.0
