"""
Geometric primitives for line-mesh healing.

Provides 3D point/vector algebra, axis-aligned bounding boxes and the
closest-approach queries used by the repair modifiers:
point-to-segment, point-to-line, ray-to-segment and segment-to-segment.
"""

import math
from dataclasses import dataclass
from typing import Iterable, Optional

from framemesh.core.constants import GEOMETRY_EPS, PARALLEL_EPS


@dataclass(frozen=True)
class Point3D:
    """Immutable 3D point, also used as a free vector."""
    x: float
    y: float
    z: float

    def __add__(self, other: "Point3D") -> "Point3D":
        return Point3D(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: "Point3D") -> "Point3D":
        return Point3D(self.x - other.x, self.y - other.y, self.z - other.z)

    def __mul__(self, k: float) -> "Point3D":
        return Point3D(self.x * k, self.y * k, self.z * k)

    __rmul__ = __mul__

    def __neg__(self) -> "Point3D":
        return Point3D(-self.x, -self.y, -self.z)

    def dot(self, other: "Point3D") -> float:
        return self.x * other.x + self.y * other.y + self.z * other.z

    def cross(self, other: "Point3D") -> "Point3D":
        return Point3D(
            self.y * other.z - self.z * other.y,
            self.z * other.x - self.x * other.z,
            self.x * other.y - self.y * other.x,
        )

    @property
    def magnitude(self) -> float:
        return math.sqrt(self.dot(self))

    def normalize(self) -> "Point3D":
        """Return the unit vector, or the zero vector for a zero-length input."""
        mag = self.magnitude
        if mag < GEOMETRY_EPS:
            return Point3D(0.0, 0.0, 0.0)
        return Point3D(self.x / mag, self.y / mag, self.z / mag)

    def distance_to(self, other: "Point3D") -> float:
        return (self - other).magnitude

    def as_tuple(self):
        return (self.x, self.y, self.z)


Vector3D = Point3D


def angle_between_deg(u: Point3D, v: Point3D) -> float:
    """Angle between two vectors in degrees (180 if either is zero-length)."""
    mu, mv = u.magnitude, v.magnitude
    if mu < GEOMETRY_EPS or mv < GEOMETRY_EPS:
        return 180.0
    cos_a = max(-1.0, min(1.0, u.dot(v) / (mu * mv)))
    return math.degrees(math.acos(cos_a))


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned bounding box."""
    min: Point3D
    max: Point3D

    @classmethod
    def from_segment(cls, a: Point3D, b: Point3D, inflate: float = 0.0) -> "BoundingBox":
        return cls(
            Point3D(min(a.x, b.x) - inflate, min(a.y, b.y) - inflate, min(a.z, b.z) - inflate),
            Point3D(max(a.x, b.x) + inflate, max(a.y, b.y) + inflate, max(a.z, b.z) + inflate),
        )

    @classmethod
    def from_point(cls, p: Point3D, inflate: float = 0.0) -> "BoundingBox":
        return cls.from_segment(p, p, inflate)

    @classmethod
    def from_points(cls, points: Iterable[Point3D]) -> Optional["BoundingBox"]:
        pts = list(points)
        if not pts:
            return None
        return cls(
            Point3D(min(p.x for p in pts), min(p.y for p in pts), min(p.z for p in pts)),
            Point3D(max(p.x for p in pts), max(p.y for p in pts), max(p.z for p in pts)),
        )

    def inflate(self, amount: float) -> "BoundingBox":
        d = Point3D(amount, amount, amount)
        return BoundingBox(self.min - d, self.max + d)

    def contains(self, p: Point3D, tol: float = 0.0) -> bool:
        return (self.min.x - tol <= p.x <= self.max.x + tol
                and self.min.y - tol <= p.y <= self.max.y + tol
                and self.min.z - tol <= p.z <= self.max.z + tol)


@dataclass(frozen=True)
class SegmentProjection:
    """Result of projecting a point onto a segment.

    Attributes:
        distance: Distance from the point to the clamped projection
        point: Projection clamped to the segment
        t: Unclamped line parameter (0 at start, 1 at end)
    """
    distance: float
    point: Point3D
    t: float


def project_point_to_line(p: Point3D, a: Point3D, b: Point3D) -> Optional[SegmentProjection]:
    """Project p onto the infinite line through a and b.

    Returns None for a degenerate line. The returned point is the
    unclamped foot of the perpendicular.
    """
    ab = b - a
    len_sq = ab.dot(ab)
    if len_sq < GEOMETRY_EPS:
        return None
    t = (p - a).dot(ab) / len_sq
    foot = a + ab * t
    return SegmentProjection(distance=p.distance_to(foot), point=foot, t=t)


def project_point_to_segment(p: Point3D, a: Point3D, b: Point3D) -> SegmentProjection:
    """Closest point on segment a-b to p.

    The projection is clamped to [0, 1]; the unclamped parameter is kept
    so callers can apply their own end slack.
    """
    ab = b - a
    len_sq = ab.dot(ab)
    if len_sq < GEOMETRY_EPS:
        return SegmentProjection(distance=p.distance_to(a), point=a, t=0.0)
    t = (p - a).dot(ab) / len_sq
    tc = min(1.0, max(0.0, t))
    foot = a + ab * tc
    return SegmentProjection(distance=p.distance_to(foot), point=foot, t=t)


@dataclass(frozen=True)
class RayHit:
    """Closest approach between a ray and a segment.

    Attributes:
        s: Signed distance along the (unit) ray direction to the ray point
        t: Segment parameter of the hit, clamped to [0, 1]
        distance: Miss distance between ray point and segment point
        ray_point: Closest point on the ray line
        segment_point: Closest point on the segment
    """
    s: float
    t: float
    distance: float
    ray_point: Point3D
    segment_point: Point3D


def intersect_ray_segment(origin: Point3D, direction: Point3D, a: Point3D, b: Point3D,
                          tolerance: float, param_slack: float = 1e-3) -> Optional[RayHit]:
    """Closest approach of a ray and a segment.

    Both line parameters are solved unclamped from the normal equations.
    Segment parameters outside [-param_slack, 1 + param_slack] are
    rejected; inside the slack band the parameter is clamped to [0, 1]
    and the ray parameter re-solved for that segment point.

    Args:
        origin: Ray origin
        direction: Ray direction (normalised internally)
        a: Segment start
        b: Segment end
        tolerance: Maximum accepted miss distance
        param_slack: Allowed overshoot of the segment parameter

    Returns:
        RayHit, or None when parallel, outside the segment or missing.
    """
    u = direction.normalize()
    v = b - a
    w = origin - a
    aa = u.dot(u)
    bb = u.dot(v)
    cc = v.dot(v)
    if aa < GEOMETRY_EPS or cc < GEOMETRY_EPS:
        return None
    d = u.dot(w)
    e = v.dot(w)
    denom = aa * cc - bb * bb
    if abs(denom) <= PARALLEL_EPS * aa * cc:
        return None

    t = (aa * e - bb * d) / denom
    if t < -param_slack or t > 1.0 + param_slack:
        return None
    t = min(1.0, max(0.0, t))
    s = (t * bb - d) / aa

    ray_point = origin + u * s
    seg_point = a + v * t
    miss = ray_point.distance_to(seg_point)
    if miss > tolerance:
        return None
    return RayHit(s=s, t=t, distance=miss, ray_point=ray_point, segment_point=seg_point)


@dataclass(frozen=True)
class SegmentPairClosest:
    """Closest points between two segments."""
    s: float
    t: float
    point_a: Point3D
    point_b: Point3D
    distance: float
    parallel: bool


def closest_points_between_segments(p1: Point3D, q1: Point3D,
                                    p2: Point3D, q2: Point3D) -> SegmentPairClosest:
    """Closest points between segments p1-q1 and p2-q2 (both clamped).

    s parameterises the first segment, t the second.
    """
    d1 = q1 - p1
    d2 = q2 - p2
    r = p1 - p2
    a = d1.dot(d1)
    e = d2.dot(d2)
    f = d2.dot(r)

    if a < GEOMETRY_EPS and e < GEOMETRY_EPS:
        return SegmentPairClosest(0.0, 0.0, p1, p2, p1.distance_to(p2), True)
    if a < GEOMETRY_EPS:
        s = 0.0
        t = min(1.0, max(0.0, f / e))
        parallel = True
    else:
        c = d1.dot(r)
        if e < GEOMETRY_EPS:
            t = 0.0
            s = min(1.0, max(0.0, -c / a))
            parallel = True
        else:
            b = d1.dot(d2)
            denom = a * e - b * b
            parallel = abs(denom) <= PARALLEL_EPS * a * e
            s = 0.0 if parallel else min(1.0, max(0.0, (b * f - c * e) / denom))
            t = (b * s + f) / e
            if t < 0.0:
                t = 0.0
                s = min(1.0, max(0.0, -c / a))
            elif t > 1.0:
                t = 1.0
                s = min(1.0, max(0.0, (b - c) / a))

    c1 = p1 + d1 * s
    c2 = p2 + d2 * t
    return SegmentPairClosest(s, t, c1, c2, c1.distance_to(c2), parallel)
