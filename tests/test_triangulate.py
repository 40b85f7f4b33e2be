from __future__ import annotations

import math

import numpy as np
import pytest

from brushmesh.conversion.face_builder import associate_vertices_with_planes
from brushmesh.conversion.map_data import Entity, MapData
from brushmesh.conversion.plane_math import Plane, enumerate_vertices
from brushmesh.conversion.triangulate import projection_axes, triangulate_face
from brushmesh.validation.core import DegenerateGeometry

from brush_fixtures import BOX_NORMALS, box_brush

SQUARE = [(-1.0, -1.0, 1.0), (1.0, -1.0, 1.0), (1.0, 1.0, 1.0), (-1.0, 1.0, 1.0)]


def _tri_normal(pts: np.ndarray, tri) -> np.ndarray:
    a, b, c = (pts[i] for i in tri)
    return np.cross(b - a, c - a)


def _tri_area(pts: np.ndarray, tri) -> float:
    return 0.5 * float(np.linalg.norm(_tri_normal(pts, tri)))


def _polygon_area(ordered: np.ndarray) -> float:
    total = np.zeros(3)
    for i in range(len(ordered)):
        total += np.cross(ordered[i], ordered[(i + 1) % len(ordered)])
    return 0.5 * float(np.linalg.norm(total))


def _slanted_face():
    planes = [Plane.from_normal_distance(n, 1.0) for n in BOX_NORMALS]
    planes.append(Plane.from_normal_distance((1.0, 0.0, 1.0), 1.0 / math.sqrt(2.0)))
    faces, _ = associate_vertices_with_planes(planes, enumerate_vertices(planes))
    face = next(f for f in faces if f.plane_index == 6)
    return face, planes[6]


def test_square_splits_into_two_triangles_covering_every_vertex() -> None:
    tris = triangulate_face(SQUARE, (0.0, 0.0, 1.0))
    pts = np.array(SQUARE)

    assert tris.triangle_count == 2
    assert {i for tri in tris.outward for i in tri} == {0, 1, 2, 3}
    assert sum(_tri_area(pts, t) for t in tris.outward) == pytest.approx(4.0)


def test_slanted_face_area_is_preserved() -> None:
    face, plane = _slanted_face()
    pts = np.array(face.vertices)
    tris = triangulate_face(face.vertices, plane.normal)

    assert len(face.vertices) == 4
    assert {i for tri in tris.outward for i in tri} == set(range(len(pts)))
    assert sum(_tri_area(pts, t) for t in tris.outward) == pytest.approx(_polygon_area(pts))
    assert _polygon_area(pts) == pytest.approx(2.0 * math.sqrt(2.0))


@pytest.mark.parametrize("normal_index", range(6))
def test_outward_and_inward_windings_face_opposite_hemispheres(normal_index: int) -> None:
    planes = [Plane.from_normal_distance(n, 1.0) for n in BOX_NORMALS]
    faces, _ = associate_vertices_with_planes(planes, enumerate_vertices(planes))
    face = faces[normal_index]
    normal = np.array(planes[face.plane_index].normal)
    pts = np.array(face.vertices)

    tris = triangulate_face(face.vertices, tuple(normal))
    for tri in tris.outward:
        assert np.dot(_tri_normal(pts, tri), normal) > 0
    for tri in tris.inward:
        assert np.dot(_tri_normal(pts, tri), normal) < 0


def test_slanted_face_winding_follows_plane_normal() -> None:
    face, plane = _slanted_face()
    pts = np.array(face.vertices)
    tris = triangulate_face(face.vertices, plane.normal)

    for tri in tris.outward:
        assert np.dot(_tri_normal(pts, tri), plane.normal) > 0


def test_base_offset_is_added_to_every_index() -> None:
    tris = triangulate_face(SQUARE, (0.0, 0.0, 1.0), base=10)
    assert {i for tri in tris.outward for i in tri} == {10, 11, 12, 13}
    assert {i for tri in tris.inward for i in tri} == {10, 11, 12, 13}


def test_collinear_vertices_are_degenerate() -> None:
    with pytest.raises(DegenerateGeometry):
        triangulate_face([(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (2.0, 0.0, 0.0)], (0.0, 0.0, 1.0))


def test_projection_drops_the_flat_axis_or_the_dominant_normal_axis() -> None:
    flat_y = np.array([(0.0, 2.0, 0.0), (1.0, 2.0, 0.0), (0.0, 2.0, 1.0)])
    assert projection_axes(flat_y, (0.0, 1.0, 0.0)) == (0, 2)

    face, plane = _slanted_face()
    # x + z = const spans all three axes; ties in |normal| drop the first
    assert projection_axes(np.array(face.vertices), plane.normal) == (1, 2)


def test_rederiving_a_brush_gives_identical_triangles() -> None:
    entities = [Entity("worldspawn", brushes=[box_brush()])]
    first = MapData.build(entities).brush_geometry(0, 0)
    second = MapData.build(entities).brush_geometry(0, 0)

    assert first.faces.keys() == second.faces.keys()
    for index, face in first.faces.items():
        assert face.vertices == second.faces[index].vertices
        assert face.triangles == second.faces[index].triangles
