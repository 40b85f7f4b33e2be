"""
Brush face assembly.

Groups the solved vertices of a brush by the bounding plane they lie on,
producing one convex polygon per plane.  Planes that touch fewer than
three vertices (slivers from near-parallel planes) produce no face; they
are reported back to the caller rather than raised.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from brushmesh.conversion.plane_math import EPSILON, Plane, Vec3, _cross, _dot, _length, _sub

logger = logging.getLogger(__name__)


@dataclass
class Face:
    """Polygon on one brush plane.

    Attributes:
        plane_index: Index of the source plane within the brush
        vertices: Incident vertices, ordered counter-clockwise around the
            plane normal
    """
    plane_index: int
    vertices: List[Vec3] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.vertices) >= 3


@dataclass
class SkippedFace:
    plane_index: int
    vertex_count: int


def _order_face_vertices(verts: List[Vec3], normal: Vec3) -> List[Vec3]:
    """Order coplanar vertices in CCW winding around normal."""
    if len(verts) < 3:
        return verts
    center = (
        sum(v[0] for v in verts) / len(verts),
        sum(v[1] for v in verts) / len(verts),
        sum(v[2] for v in verts) / len(verts),
    )
    # Local 2D basis on the plane, anchored on the first vertex off-center
    ref = None
    for v in verts:
        d = _sub(v, center)
        if _length(d) > EPSILON:
            ref = d
            break
    if ref is None:
        return verts
    ref_len = _length(ref)
    u = (ref[0] / ref_len, ref[1] / ref_len, ref[2] / ref_len)
    v_axis = _cross(normal, u)

    def angle(pt: Vec3) -> float:
        d = _sub(pt, center)
        return math.atan2(_dot(d, v_axis), _dot(d, u))

    return sorted(verts, key=angle)


def associate_vertices_with_planes(
    planes: Sequence[Plane],
    vertices: Sequence[Vec3],
    epsilon: float = EPSILON,
) -> Tuple[List[Face], List[SkippedFace]]:
    """Collect, for each plane, every vertex lying on its boundary.

    Args:
        planes: Brush planes in face order
        vertices: Vertices solved from the same planes
        epsilon: Tolerance for |normal . v - dist|

    Returns:
        (faces, skipped) where faces hold at least three vertices each and
        skipped lists the planes that did not
    """
    faces: List[Face] = []
    skipped: List[SkippedFace] = []

    for plane_index, plane in enumerate(planes):
        on_plane = [v for v in vertices if plane.on_boundary(v, epsilon)]
        if len(on_plane) < 3:
            logger.debug(f"Plane {plane_index} touches {len(on_plane)} vertices, skipping")
            skipped.append(SkippedFace(plane_index, len(on_plane)))
            continue
        faces.append(Face(plane_index, _order_face_vertices(on_plane, plane.normal)))

    return faces, skipped
