from __future__ import annotations

import numpy as np
import pytest

from brushmesh.conversion.map_data import Entity, MapData
from brushmesh.conversion.mesh_splitter import split_brush
from brushmesh.conversion.scene import (
    MATERIAL_FLAG_EMISSIVE,
    AlphaProperty,
    CollisionRoot,
    MaterialProperty,
    Mesh,
    SceneNode,
    TextureProperty,
    TriShapeData,
)
from brushmesh.conversion.settings import EntityConfig
from brushmesh.conversion.surfaces import FaceExtension, SurfaceFlags

from brush_fixtures import box_brush


def _nodes(*brushes, material=None):
    map_data = MapData.build([Entity("func_wall", brushes=list(brushes))])
    nodes = []
    for geometry in map_data.entity_brushes(0):
        nodes.extend(split_brush(geometry, material))
    return nodes


def _properties(mesh: Mesh, shape) -> list:
    return [mesh.stream.get(link) for link in shape.properties]


def test_visual_root_carries_map_scale() -> None:
    mesh = Mesh()
    root = mesh.stream.get(mesh.stream.roots[0], SceneNode)
    assert root.children == [mesh.visual_root]
    assert mesh.stream.get(mesh.visual_root, SceneNode).scale == 2.0


def test_collision_shape_shares_visual_data_when_counts_match() -> None:
    brush = box_brush(textures=["skip", "skip"] + ["wood01"] * 4)
    mesh = Mesh.from_nodes(_nodes(brush))

    visual = mesh.visual_shapes()
    collision = mesh.collision_shapes()
    assert [s.name for s in visual] == ["wood01"]
    assert len(collision) == 1
    assert collision[0].data == visual[0].data
    assert len(list(mesh.stream.objects_of_type(TriShapeData))) == 1


def test_collision_gets_own_data_when_counts_differ() -> None:
    ext = [FaceExtension(surface_flags=int(SurfaceFlags.NO_CLIP))] + [FaceExtension()] * 5
    mesh = Mesh.from_nodes(_nodes(box_brush(extensions=ext)))

    visual = mesh.stream.get(mesh.visual_shapes()[0].data, TriShapeData)
    collision = mesh.stream.get(mesh.collision_shapes()[0].data, TriShapeData)
    assert len(visual.vertices) == 24
    assert len(collision.vertices) == 20
    assert collision.uvs is None


def test_collision_root_is_created_only_for_collision_geometry() -> None:
    water_only = Mesh.from_nodes(_nodes(box_brush(textures=["water1"] * 6)))
    assert water_only.collision_root is None
    assert water_only.collision_shapes() == []

    mesh = Mesh.from_nodes(_nodes(box_brush()))
    assert mesh.collision_root is not None
    assert mesh.collision_root in mesh.stream.get(mesh.visual_root, SceneNode).children
    assert len(list(mesh.stream.objects_of_type(CollisionRoot))) == 1


def test_clip_brush_has_collision_but_no_visual_shape() -> None:
    mesh = Mesh.from_nodes(_nodes(box_brush(textures=["clip"] * 6)))
    assert mesh.visual_shapes() == []
    assert len(mesh.collision_shapes()) == 1
    assert mesh.node_centroids == []


def test_texture_binding_without_resolver_uses_bare_name() -> None:
    mesh = Mesh.from_nodes(_nodes(box_brush()))
    props = _properties(mesh, mesh.visual_shapes()[0])
    assert [p.source for p in props if isinstance(p, TextureProperty)] == ["wood01"]


def test_sky_binds_flat_emissive_material() -> None:
    mesh = Mesh.from_nodes(_nodes(box_brush(textures=["sky5_blu"] * 6)))
    materials = [p for p in _properties(mesh, mesh.visual_shapes()[0])
                 if isinstance(p, MaterialProperty)]
    assert len(materials) == 1
    assert materials[0].emissive_color == (1.0, 0.0, 1.0)
    assert materials[0].flags == MATERIAL_FLAG_EMISSIVE


def test_entity_material_and_alpha_properties_are_bound() -> None:
    config = EntityConfig.from_properties({
        "diffuse_color": "0.5 0.5 0.5",
        "material_alpha": "0.25",
        "alpha_blend": "1",
        "alpha_test_threshold": "128",
    })
    mesh = Mesh.from_nodes(_nodes(box_brush(), material=config))
    props = _properties(mesh, mesh.visual_shapes()[0])

    material = next(p for p in props if isinstance(p, MaterialProperty))
    alpha = next(p for p in props if isinstance(p, AlphaProperty))
    assert material.diffuse_color == (0.5, 0.5, 0.5)
    assert material.alpha == 0.25
    assert material.ambient_color is None
    assert alpha.blend and not alpha.test
    assert alpha.threshold == 128


def test_plain_entity_binds_texture_only() -> None:
    mesh = Mesh.from_nodes(_nodes(box_brush()))
    props = _properties(mesh, mesh.visual_shapes()[0])
    assert len(props) == 1
    assert isinstance(props[0], TextureProperty)


def test_anchor_is_mean_of_submesh_centroids() -> None:
    a = box_brush((0.0, 0.0, 0.0), (2.0, 2.0, 2.0), textures=["a"] * 6)
    b = box_brush((4.0, 0.0, 0.0), (6.0, 2.0, 2.0), textures=["b"] * 6, brush_id=1)
    mesh = Mesh.from_nodes(_nodes(a, b))

    anchor = mesh.finalize()
    assert anchor == pytest.approx((3.0, 1.0, -1.0))
    assert mesh.placement() == (anchor, None)

    xs = np.concatenate([d.vertices[:, 0] for d in mesh.stream.objects_of_type(TriShapeData)])
    assert xs.min() == pytest.approx(-3.0)
    assert xs.max() == pytest.approx(3.0)


def test_finalize_moves_shared_data_once() -> None:
    mesh = Mesh.from_nodes(_nodes(box_brush((0.0, 0.0, 0.0), (2.0, 2.0, 2.0))))
    mesh.finalize()

    blocks = list(mesh.stream.objects_of_type(TriShapeData))
    assert len(blocks) == 1
    np.testing.assert_allclose(blocks[0].vertices.mean(axis=0), [0.0, 0.0, 0.0], atol=1e-6)


def test_finalize_applies_inverse_rotation() -> None:
    mesh = Mesh.from_nodes(_nodes(box_brush((0.0, 0.0, 0.0), (2.0, 4.0, 2.0))))
    mesh.finalize(rotation=(90.0, 0.0, 0.0))

    data = next(mesh.stream.objects_of_type(TriShapeData))
    # Centered engine-space extents are x 2, y 2, z 4; undoing +90 about X swaps y and z
    np.testing.assert_allclose(data.vertices.min(axis=0), [-1.0, -2.0, -1.0], atol=1e-5)
    np.testing.assert_allclose(data.vertices.max(axis=0), [1.0, 2.0, 1.0], atol=1e-5)
    np.testing.assert_allclose(np.linalg.norm(data.normals, axis=1), 1.0, rtol=1e-5)
    assert mesh.rotation == (90.0, 0.0, 0.0)


def test_empty_mesh_finalizes_at_origin() -> None:
    assert Mesh().finalize() == (0.0, 0.0, 0.0)


def test_repeated_finalize_keeps_geometry_and_anchor() -> None:
    a = box_brush((0.0, 0.0, 0.0), (2.0, 2.0, 2.0), textures=["a"] * 6)
    b = box_brush((4.0, 0.0, 0.0), (6.0, 2.0, 2.0), textures=["b"] * 6, brush_id=1)
    mesh = Mesh.from_nodes(_nodes(a, b))

    first = mesh.finalize(rotation=(0.0, 0.0, 90.0))
    before = [d.vertices.copy() for d in mesh.stream.objects_of_type(TriShapeData)]
    second = mesh.finalize(rotation=(0.0, 0.0, 90.0))
    after = [d.vertices for d in mesh.stream.objects_of_type(TriShapeData)]

    assert second == first == pytest.approx((3.0, 1.0, -1.0))
    for old, new in zip(before, after):
        np.testing.assert_array_equal(old, new)
    assert mesh.centroid(mesh.node_centroids) == pytest.approx((0.0, 0.0, 0.0), abs=1e-9)
