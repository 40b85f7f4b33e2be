"""
Plane geometry for brush half-spaces.

Primary representation: unit normal + distance from origin, with the solid
on the side where normal . x <= dist.  Planes are built from the three
editor points of a brush face; brush vertices are recovered by
intersecting every triple of planes and keeping the points that lie
inside all of them.
"""

from __future__ import annotations
import itertools
import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from brushmesh.validation.core import DegenerateGeometry

logger = logging.getLogger(__name__)

Vec3 = Tuple[float, float, float]

EPSILON = 1e-10


def _cross(a: Vec3, b: Vec3) -> Vec3:
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


def _dot(a: Vec3, b: Vec3) -> float:
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def _sub(a: Vec3, b: Vec3) -> Vec3:
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def _length(v: Vec3) -> float:
    return math.sqrt(v[0] * v[0] + v[1] * v[1] + v[2] * v[2])


@dataclass(frozen=True)
class Plane:
    """A brush bounding plane: normal . x = dist on the boundary.

    The normal points out of the solid, so points inside the brush satisfy
    normal . x <= dist.
    """

    normal: Vec3
    dist: float

    @classmethod
    def from_normal_distance(cls, normal: Vec3, dist: float) -> "Plane":
        ln = _length(normal)
        if ln < EPSILON:
            raise DegenerateGeometry(f"Zero-length plane normal: {normal}")
        return cls((normal[0] / ln, normal[1] / ln, normal[2] / ln), float(dist))

    def distance_to(self, point: Vec3) -> float:
        """Signed distance from the plane, positive outside the solid."""
        return _dot(self.normal, point) - self.dist

    def contains(self, point: Vec3, epsilon: float = EPSILON) -> bool:
        """True if the point is inside or on this half-space."""
        return self.distance_to(point) <= epsilon

    def on_boundary(self, point: Vec3, epsilon: float = EPSILON) -> bool:
        return abs(self.distance_to(point)) <= epsilon


def plane_from_points(p1: Vec3, p2: Vec3, p3: Vec3, epsilon: float = EPSILON) -> Plane:
    """Compute a plane from three points (winding order sets the normal side).

    normal = normalize((p2 - p1) x (p3 - p1)), dist = normal . p1

    Raises:
        DegenerateGeometry: If the points are collinear
    """
    n = _cross(_sub(p2, p1), _sub(p3, p1))
    ln = _length(n)
    if ln < epsilon:
        raise DegenerateGeometry(f"Collinear plane points: {p1}, {p2}, {p3}")
    normal = (n[0] / ln, n[1] / ln, n[2] / ln)
    return Plane(normal, _dot(normal, p1))


def solve_vertex(a: Plane, b: Plane, c: Plane, epsilon: float = EPSILON) -> Optional[Vec3]:
    """Intersect three planes.

    Solves the 3x3 system whose rows are the plane normals and whose
    right-hand side is the plane distances.

    Returns:
        The intersection point, or None when the planes do not meet in a
        single point (|det| below epsilon).  Most triples of a convex brush
        fall in this case, so None is an ordinary outcome.
    """
    m = np.array([a.normal, b.normal, c.normal], dtype=np.float64)
    if abs(np.linalg.det(m)) < epsilon:
        return None
    rhs = np.array([a.dist, b.dist, c.dist], dtype=np.float64)
    x, y, z = np.linalg.inv(m) @ rhs
    return (float(x), float(y), float(z))


def _points_equal(a: Vec3, b: Vec3, epsilon: float) -> bool:
    return (abs(a[0] - b[0]) <= epsilon
            and abs(a[1] - b[1]) <= epsilon
            and abs(a[2] - b[2]) <= epsilon)


def enumerate_vertices(planes: Sequence[Plane], epsilon: float = EPSILON) -> List[Vec3]:
    """Recover the vertices of the convex solid bounded by `planes`.

    Every unordered triple of distinct planes is intersected; a candidate
    is accepted only if it lies inside every plane of the brush.  Points
    within epsilon of an already accepted vertex are merged.

    Returns:
        Accepted vertices in discovery order (triples in lexicographic order)
    """
    vertices: List[Vec3] = []
    for i, j, k in itertools.combinations(range(len(planes)), 3):
        pt = solve_vertex(planes[i], planes[j], planes[k], epsilon)
        if pt is None:
            continue
        if not all(p.contains(pt, epsilon) for p in planes):
            continue
        if any(_points_equal(pt, v, epsilon) for v in vertices):
            continue
        vertices.append(pt)

    logger.debug(f"Solved {len(vertices)} vertices from {len(planes)} planes")
    return vertices
