"""
Tests for the geometric primitives used by the healing modifiers.
"""

import pytest

from framemesh.fem.geometry import (
    BoundingBox,
    Point3D,
    angle_between_deg,
    closest_points_between_segments,
    intersect_ray_segment,
    project_point_to_line,
    project_point_to_segment,
)

ORIGIN = Point3D(0.0, 0.0, 0.0)
X_AXIS = Point3D(1.0, 0.0, 0.0)


class TestPoint3D:
    """Vector algebra on points."""

    def test_arithmetic(self):
        a = Point3D(1.0, 2.0, 3.0)
        b = Point3D(1.0, 1.0, 1.0)
        assert a + b == Point3D(2.0, 3.0, 4.0)
        assert a - b == Point3D(0.0, 1.0, 2.0)
        assert a * 2 == Point3D(2.0, 4.0, 6.0)
        assert 2 * a == a * 2
        assert -a == Point3D(-1.0, -2.0, -3.0)

    def test_dot_and_cross(self):
        y_axis = Point3D(0.0, 1.0, 0.0)
        assert X_AXIS.dot(y_axis) == 0.0
        assert X_AXIS.cross(y_axis) == Point3D(0.0, 0.0, 1.0)

    def test_normalize(self):
        unit = Point3D(3.0, 4.0, 0.0).normalize()
        assert unit.magnitude == pytest.approx(1.0)
        assert unit.x == pytest.approx(0.6)

    def test_normalize_zero_vector(self):
        assert ORIGIN.normalize() == ORIGIN

    def test_angle_between(self):
        assert angle_between_deg(X_AXIS, Point3D(0.0, 1.0, 0.0)) == pytest.approx(90.0)
        assert angle_between_deg(X_AXIS, Point3D(5.0, 0.0, 0.0)) == pytest.approx(0.0)
        assert angle_between_deg(X_AXIS, ORIGIN) == 180.0


class TestBoundingBox:
    def test_from_segment_inflated(self):
        box = BoundingBox.from_segment(Point3D(10.0, 0.0, 0.0), ORIGIN, inflate=1.0)
        assert box.min == Point3D(-1.0, -1.0, -1.0)
        assert box.max == Point3D(11.0, 1.0, 1.0)

    def test_contains_with_tolerance(self):
        box = BoundingBox.from_point(ORIGIN)
        assert box.contains(ORIGIN)
        assert not box.contains(Point3D(0.5, 0.0, 0.0))
        assert box.contains(Point3D(0.5, 0.0, 0.0), tol=0.5)

    def test_from_points_empty(self):
        assert BoundingBox.from_points([]) is None


class TestProjection:
    """Point-to-line and point-to-segment projection."""

    def test_interior_projection(self):
        proj = project_point_to_segment(Point3D(5.0, 3.0, 0.0), ORIGIN, Point3D(10.0, 0.0, 0.0))
        assert proj.distance == pytest.approx(3.0)
        assert proj.t == pytest.approx(0.5)
        assert proj.point == Point3D(5.0, 0.0, 0.0)

    def test_projection_beyond_end_is_clamped(self):
        proj = project_point_to_segment(Point3D(15.0, 0.0, 0.0), ORIGIN, Point3D(10.0, 0.0, 0.0))
        assert proj.t == pytest.approx(1.5)
        assert proj.point == Point3D(10.0, 0.0, 0.0)
        assert proj.distance == pytest.approx(5.0)

    def test_line_projection_is_unclamped(self):
        proj = project_point_to_line(Point3D(15.0, 2.0, 0.0), ORIGIN, Point3D(10.0, 0.0, 0.0))
        assert proj.point.x == pytest.approx(15.0)
        assert proj.distance == pytest.approx(2.0)

    def test_degenerate_line(self):
        assert project_point_to_line(X_AXIS, ORIGIN, ORIGIN) is None
        assert project_point_to_segment(X_AXIS, ORIGIN, ORIGIN).distance == pytest.approx(1.0)


class TestRaySegment:
    """Closest approach of a ray and a segment."""

    def test_perpendicular_hit(self):
        hit = intersect_ray_segment(ORIGIN, X_AXIS, Point3D(10.0, -5.0, 0.0),
                                    Point3D(10.0, 5.0, 0.0), tolerance=1.0)
        assert hit is not None
        assert hit.s == pytest.approx(10.0)
        assert hit.t == pytest.approx(0.5)
        assert hit.distance == pytest.approx(0.0)
        assert hit.segment_point == Point3D(10.0, 0.0, 0.0)

    def test_hit_behind_origin_has_negative_s(self):
        hit = intersect_ray_segment(ORIGIN, X_AXIS, Point3D(-4.0, -5.0, 0.0),
                                    Point3D(-4.0, 5.0, 0.0), tolerance=1.0)
        assert hit is not None
        assert hit.s == pytest.approx(-4.0)

    def test_parallel_returns_none(self):
        assert intersect_ray_segment(ORIGIN, X_AXIS, Point3D(0.0, 1.0, 0.0),
                                     Point3D(10.0, 1.0, 0.0), tolerance=5.0) is None

    def test_outside_segment_returns_none(self):
        assert intersect_ray_segment(ORIGIN, X_AXIS, Point3D(10.0, 1.0, 0.0),
                                     Point3D(10.0, 5.0, 0.0), tolerance=5.0) is None

    def test_miss_distance_against_tolerance(self):
        a, b = Point3D(10.0, -5.0, 3.0), Point3D(10.0, 5.0, 3.0)
        assert intersect_ray_segment(ORIGIN, X_AXIS, a, b, tolerance=1.0) is None
        hit = intersect_ray_segment(ORIGIN, X_AXIS, a, b, tolerance=5.0)
        assert hit.distance == pytest.approx(3.0)

    def test_slack_band_is_clamped(self):
        # Segment ends 0.5 short of the ray line: t = -0.05 before clamping
        hit = intersect_ray_segment(ORIGIN, X_AXIS, Point3D(10.0, 0.5, 0.0),
                                    Point3D(10.0, 10.5, 0.0), tolerance=1.0, param_slack=0.1)
        assert hit is not None
        assert hit.t == 0.0
        assert hit.segment_point == Point3D(10.0, 0.5, 0.0)


class TestSegmentPair:
    """Closest points between two segments."""

    def test_skew_crossing(self):
        res = closest_points_between_segments(
            ORIGIN, Point3D(10.0, 0.0, 0.0),
            Point3D(5.0, -5.0, 1.0), Point3D(5.0, 5.0, 1.0),
        )
        assert not res.parallel
        assert res.s == pytest.approx(0.5)
        assert res.t == pytest.approx(0.5)
        assert res.distance == pytest.approx(1.0)
        assert res.point_a == Point3D(5.0, 0.0, 0.0)

    def test_parallel_flag(self):
        res = closest_points_between_segments(
            ORIGIN, Point3D(10.0, 0.0, 0.0),
            Point3D(0.0, 2.0, 0.0), Point3D(10.0, 2.0, 0.0),
        )
        assert res.parallel
        assert res.distance == pytest.approx(2.0)

    def test_clamped_to_endpoints(self):
        res = closest_points_between_segments(
            ORIGIN, Point3D(10.0, 0.0, 0.0),
            Point3D(20.0, -5.0, 0.0), Point3D(20.0, 5.0, 0.0),
        )
        assert res.s == pytest.approx(1.0)
        assert res.distance == pytest.approx(10.0)
