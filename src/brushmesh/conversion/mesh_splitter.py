"""
Per-texture submesh building.

A brush may carry several textures, but one shape may only carry one, so
each brush is split into one BrushNode per texture.  Every node holds two
independent buffer sets: visual (positions, normals, UVs, triangles) and
collision (positions, triangles).  They only differ where the surface
rules exclude a face from one side; geometry is never re-solved.

Triangle indices are narrowed to unsigned 16-bit, so a node that needs
more than 65535 vertices on one side raises CapacityExceeded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from brushmesh.conversion.map_data import BrushGeometry, FaceGeometry
from brushmesh.conversion.plane_math import Vec3
from brushmesh.conversion.settings import U16_VERTEX_LIMIT, ConversionSettings, EntityConfig
from brushmesh.conversion.surfaces import classify_surface
from brushmesh.conversion.textures import Vec2
from brushmesh.conversion.triangulate import Triangle
from brushmesh.validation import rules
from brushmesh.validation.core import CapacityExceeded, ConversionReport, MissingDerivedData

logger = logging.getLogger(__name__)


def to_engine_axes(v: Sequence[float]) -> Vec3:
    """Editor Z-up to engine Y-up: (x, y, z) -> (x, z, -y).

    The sign flip on the new Z keeps the mapping a rotation, so triangle
    winding survives the swap.
    """
    return (v[0], v[2], -v[1])


@dataclass
class ShapeBuffers:
    """Emitted geometry for one side (visual or collision) of a node."""
    vertices: np.ndarray
    triangles: np.ndarray
    normals: Optional[np.ndarray] = None
    uvs: Optional[np.ndarray] = None

    @classmethod
    def empty(cls) -> "ShapeBuffers":
        return cls(
            vertices=np.zeros((0, 3), dtype=np.float32),
            triangles=np.zeros((0, 3), dtype=np.uint16),
        )

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def triangle_count(self) -> int:
        return len(self.triangles)

    @property
    def is_empty(self) -> bool:
        return len(self.vertices) == 0


def reindex_faces(face_triangles: Sequence[Sequence[Triangle]]) -> Tuple[List[Triangle], List[int]]:
    """Concatenate per-face local triangle lists into one index space.

    Each face's indices are offset by a running counter that grows, per
    face, by the number of distinct indices that face references.

    Returns:
        (triangles, offsets) where offsets[i] is the base used for face i
    """
    triangles: List[Triangle] = []
    offsets: List[int] = []
    verts_used = 0
    for tris in face_triangles:
        offsets.append(verts_used)
        triangles.extend(
            (a + verts_used, b + verts_used, c + verts_used) for a, b, c in tris
        )
        verts_used += len({i for tri in tris for i in tri})
    return triangles, offsets


class _SideAccumulator:
    """Collects faces for one side of a node, compacting unused vertex slots."""

    def __init__(self, with_attributes: bool):
        self.with_attributes = with_attributes
        self.vertices: List[Vec3] = []
        self.normals: List[Vec3] = []
        self.uvs: List[Vec2] = []
        self.face_triangles: List[List[Triangle]] = []
        self.face_indices: List[int] = []

    def add_face(self, face: FaceGeometry, triangles: Sequence[Triangle],
                 normals: Optional[Sequence[Vec3]] = None) -> None:
        used = sorted({i for tri in triangles for i in tri})
        remap = {old: new for new, old in enumerate(used)}
        self.vertices.extend(face.vertices[i] for i in used)
        if self.with_attributes:
            self.normals.extend(normals[i] for i in used)
            self.uvs.extend(face.uvs[i] for i in used)
        self.face_triangles.append([tuple(remap[i] for i in tri) for tri in triangles])
        self.face_indices.append(face.face_index)

    def build(self, texture: str, swap_up_axis: bool) -> ShapeBuffers:
        if not self.vertices:
            return ShapeBuffers.empty()

        if len(self.vertices) > U16_VERTEX_LIMIT:
            logger.error(f"Submesh '{texture}' needs {len(self.vertices)} vertices")
            raise CapacityExceeded(len(self.vertices), U16_VERTEX_LIMIT, texture)

        triangles, _ = reindex_faces(self.face_triangles)
        emit = to_engine_axes if swap_up_axis else tuple

        buffers = ShapeBuffers(
            vertices=np.array([emit(v) for v in self.vertices], dtype=np.float32),
            triangles=np.array(triangles, dtype=np.uint16).reshape(-1, 3),
        )
        if self.with_attributes:
            buffers.normals = np.array([emit(n) for n in self.normals], dtype=np.float32)
            buffers.uvs = np.array(self.uvs, dtype=np.float32).reshape(-1, 2)
        return buffers


@dataclass
class BrushNode:
    """One texture's worth of a brush, ready to attach to a Mesh.

    Attributes:
        texture: Texture shared by every face of the group
        material: Material/alpha properties read from the owning entity
        use_emissive: Bind the flat emissive material instead of lighting
        visual: Visual buffers (positions, normals, UVs, triangles)
        collision: Collision buffers (positions, triangles)
        centroid: Mean visual vertex position, None without visual geometry
        visual_faces: Face indices contributing to visual
        collision_faces: Face indices contributing to collision
    """
    texture: str
    material: EntityConfig = field(default_factory=EntityConfig)
    use_emissive: bool = False
    visual: ShapeBuffers = field(default_factory=ShapeBuffers.empty)
    collision: ShapeBuffers = field(default_factory=ShapeBuffers.empty)
    centroid: Optional[Vec3] = None
    visual_faces: List[int] = field(default_factory=list)
    collision_faces: List[int] = field(default_factory=list)

    @property
    def has_visual(self) -> bool:
        return not self.visual.is_empty

    @property
    def has_collision(self) -> bool:
        return not self.collision.is_empty


def group_faces_by_texture(textures: Sequence[str]) -> Dict[str, List[int]]:
    """Face indices per texture, textures in order of first appearance."""
    groups: Dict[str, List[int]] = {}
    for face_index, texture in enumerate(textures):
        groups.setdefault(texture, []).append(face_index)
    return groups


def _check_face(face: FaceGeometry, brush_id: int) -> None:
    count = len(face.vertices)
    missing = None
    if not face.triangles:
        missing = "triangle indices"
    elif len(face.inverted_triangles) != len(face.triangles):
        missing = "inverted triangle indices"
    elif len(face.uvs) != count:
        missing = "UVs"
    elif len(face.flat_normals) != count or len(face.smooth_normals) != count:
        missing = "normals"
    if missing:
        logger.error(f"Brush {brush_id} face {face.face_index} is missing {missing}")
        raise MissingDerivedData(
            rules.DATA_001.format_message(face=face.face_index, artifact=missing))


def build_node(geometry: BrushGeometry, texture: str, face_indices: Sequence[int],
               material: EntityConfig, settings: ConversionSettings,
               report: Optional[ConversionReport] = None,
               entity_index: Optional[int] = None) -> BrushNode:
    """
    Build one node from the faces of a single texture group.

    Faces the assembler dropped are skipped (they were already reported);
    faces that exist but lack a derived artifact abort with
    MissingDerivedData.

    Raises:
        MissingDerivedData: If a face is missing triangles, UVs or normals
        CapacityExceeded: If one side needs more than 65535 vertices
    """
    node = BrushNode(texture=texture, material=material)
    visual = _SideAccumulator(with_attributes=True)
    collision = _SideAccumulator(with_attributes=False)

    for face_index in face_indices:
        effects = classify_surface(texture, geometry.extensions[face_index], settings)
        if effects.excluded:
            if report is not None:
                report.add_issue(rules.FACE_002.issue(
                    entity=entity_index, brush=geometry.brush_id, face=face_index,
                    texture=texture, targets="visual and collision"))
            continue

        face = geometry.faces.get(face_index)
        if face is None:
            continue
        _check_face(face, geometry.brush_id)

        indices = list(face.inverted_triangles if effects.invert_winding else face.triangles)
        if effects.append_inverted:
            indices.extend(face.inverted_triangles)
            logger.info(f"Brush {geometry.brush_id} face {face_index} interpreted as liquid")

        if not effects.exclude_visual:
            normals = face.smooth_normals if effects.use_smooth_normals else face.flat_normals
            visual.add_face(face, indices, normals)
            node.use_emissive = node.use_emissive or effects.use_emissive

        if not effects.exclude_collision:
            collision.add_face(face, indices)

    node.visual = visual.build(texture, settings.swap_up_axis)
    node.collision = collision.build(texture, settings.swap_up_axis)
    node.visual_faces = visual.face_indices
    node.collision_faces = collision.face_indices
    if node.has_visual:
        c = node.visual.vertices.astype(np.float64).mean(axis=0)
        node.centroid = (float(c[0]), float(c[1]), float(c[2]))
    return node


def split_brush(geometry: BrushGeometry, material: Optional[EntityConfig] = None,
                settings: Optional[ConversionSettings] = None,
                report: Optional[ConversionReport] = None,
                entity_index: Optional[int] = None) -> List[BrushNode]:
    """Split one brush into per-texture nodes.

    Nodes with neither visual nor collision geometry (e.g. an all-skip
    texture group) are not returned.
    """
    material = material or EntityConfig()
    settings = settings or ConversionSettings()

    nodes: List[BrushNode] = []
    for texture, face_indices in group_faces_by_texture(geometry.textures).items():
        node = build_node(geometry, texture, face_indices, material, settings,
                          report, entity_index)
        if node.has_visual or node.has_collision:
            nodes.append(node)
        else:
            logger.debug(f"Brush {geometry.brush_id} texture '{texture}' produced no geometry")
    return nodes
