"""
Face triangulation.

Projects a planar face onto the two coordinate axes it actually spans,
runs a 2D Delaunay triangulation, and maps the triangles back onto the
face's vertex indices.  Both windings are produced: outward (triangle
normals agree with the plane normal) and inward (mirrored).  Which one a
face uses is decided by the surface rules, not here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

import numpy as np
from scipy.spatial import Delaunay, QhullError

from brushmesh.conversion.plane_math import EPSILON, Vec3
from brushmesh.validation.core import DegenerateGeometry

logger = logging.getLogger(__name__)

Triangle = Tuple[int, int, int]


@dataclass
class Triangulation:
    """Triangles of one face in both windings.

    Indices refer to the face's vertex list (plus any base offset given
    to triangulate_face).
    """
    outward: List[Triangle] = field(default_factory=list)
    inward: List[Triangle] = field(default_factory=list)

    @property
    def triangle_count(self) -> int:
        return len(self.outward)


def projection_axes(points: np.ndarray, normal: Vec3, epsilon: float = EPSILON) -> Tuple[int, int]:
    """Pick the two axes to keep when flattening a planar point set.

    The dropped axis is the one whose spread across the points is below
    epsilon.  Slanted faces have no such axis; for them the axis of the
    dominant normal component is dropped, which keeps the projection
    non-degenerate.
    """
    spread = points.max(axis=0) - points.min(axis=0)
    flat = [axis for axis in range(3) if spread[axis] < epsilon]
    if len(flat) == 1:
        drop = flat[0]
    else:
        drop = int(np.argmax(np.abs(np.asarray(normal, dtype=np.float64))))
    keep = tuple(axis for axis in range(3) if axis != drop)
    return keep[0], keep[1]


def triangulate_face(
    vertices: Sequence[Vec3],
    normal: Vec3,
    base: int = 0,
    epsilon: float = EPSILON,
) -> Triangulation:
    """Triangulate a convex planar polygon.

    Args:
        vertices: Face vertices (at least three, coplanar)
        normal: Outward plane normal of the face
        base: Offset added to every emitted index, for brush-level indexing
        epsilon: Tolerance for flat axes and zero-area triangles

    Returns:
        Triangulation with outward and inward index triples

    Raises:
        DegenerateGeometry: If the projected points admit no triangulation
    """
    points = np.asarray(vertices, dtype=np.float64)
    if len(points) < 3:
        raise DegenerateGeometry(f"Cannot triangulate {len(points)} vertices")

    u_axis, v_axis = projection_axes(points, normal, epsilon)
    projected = points[:, [u_axis, v_axis]]

    try:
        delaunay = Delaunay(projected)
    except QhullError as e:
        raise DegenerateGeometry(f"Face projection is degenerate: {e}") from e

    n = np.asarray(normal, dtype=np.float64)
    result = Triangulation()
    for simplex in delaunay.simplices:
        a, b, c = (int(i) for i in simplex)
        tri_normal = np.cross(points[b] - points[a], points[c] - points[a])
        facing = float(np.dot(tri_normal, n))
        if abs(facing) < epsilon:
            continue
        if facing < 0:
            b, c = c, b
        result.outward.append((a + base, b + base, c + base))
        result.inward.append((a + base, c + base, b + base))

    logger.debug(f"Triangulated {len(points)} vertices into {result.triangle_count} triangles")
    return result

