"""
Brush/entity records and the derived per-face geometry.

The text parser is an external collaborator: it produces Entity records
holding Brushes made of FacePlanes (three editor points, a texture and
its alignment, an optional Quake 2 extension).  MapData.build runs the
plane solver, face assembler and triangulator over every brush once and
keeps the results immutable for the mesh splitter to consume.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from brushmesh.conversion.face_builder import associate_vertices_with_planes
from brushmesh.conversion.plane_math import Plane, Vec3, enumerate_vertices, plane_from_points
from brushmesh.conversion.settings import DEFAULT_TEXTURE_SIZE, ConversionSettings
from brushmesh.conversion.surfaces import FaceExtension, classify_surface
from brushmesh.conversion.textures import TextureResolver, Vec2, planar_uv
from brushmesh.conversion.triangulate import Triangle, triangulate_face
from brushmesh.validation import rules
from brushmesh.validation.core import (
    ConversionReport, ConversionStage, DegenerateGeometry, ResourceNotFound,
)

logger = logging.getLogger(__name__)

UvProvider = Callable[[Vec3, Vec3, "FacePlane", Tuple[int, int]], Vec2]

# Fewest planes that can bound a solid (tetrahedron)
MIN_BRUSH_PLANES = 4


@dataclass
class FacePlane:
    """
    One brush face as written in the map: a plane through three points.

    The normal of (p2 - p1) x (p3 - p1) points out of the solid.
    """
    p1: Vec3
    p2: Vec3
    p3: Vec3
    texture: str = "wall"
    x_offset: float = 0.0
    y_offset: float = 0.0
    rotation: float = 0.0
    x_scale: float = 1.0
    y_scale: float = 1.0
    extension: FaceExtension = field(default_factory=FaceExtension)


@dataclass
class Brush:
    """
    A convex solid: the intersection of the half-spaces of its faces.
    """
    faces: List[FacePlane] = field(default_factory=list)
    brush_id: int = 0


@dataclass
class Entity:
    """
    A map entity: classname, free-form properties and any brushes it owns.
    """
    classname: str
    properties: Dict[str, str] = field(default_factory=dict)
    brushes: List[Brush] = field(default_factory=list)


@dataclass(frozen=True)
class FaceGeometry:
    """Derived artifacts of one brush face.

    Triangle indices are local to this face's vertex list.
    """
    face_index: int
    texture: str
    extension: FaceExtension
    normal: Vec3
    vertices: Tuple[Vec3, ...]
    triangles: Tuple[Triangle, ...]
    inverted_triangles: Tuple[Triangle, ...]
    flat_normals: Tuple[Vec3, ...]
    smooth_normals: Tuple[Vec3, ...]
    uvs: Tuple[Vec2, ...]


@dataclass(frozen=True)
class BrushGeometry:
    """Solved geometry of one brush.

    Attributes:
        brush_id: Id of the source brush
        textures: Texture name of every declared face, in face order
        extensions: Extension record of every declared face
        vertices: Solved brush vertices
        faces: Derived faces keyed by face index; faces that were
            dropped (degenerate plane, fewer than three vertices) are absent
    """
    brush_id: int
    textures: Tuple[str, ...]
    extensions: Tuple[FaceExtension, ...]
    vertices: Tuple[Vec3, ...]
    faces: Dict[int, FaceGeometry]


def _average_normal(vertex: Vec3, planes: Sequence[Plane], epsilon: float) -> Vec3:
    sx = sy = sz = 0.0
    for plane in planes:
        if plane.on_boundary(vertex, epsilon):
            sx += plane.normal[0]
            sy += plane.normal[1]
            sz += plane.normal[2]
    ln = (sx * sx + sy * sy + sz * sz) ** 0.5
    if ln == 0.0:
        return (0.0, 0.0, 1.0)
    return (sx / ln, sy / ln, sz / ln)


class MapData:
    """Entities plus the derived geometry of every brush they own.

    Use MapData.build; the constructor only stores already-derived data.
    """

    def __init__(self, entities: List[Entity], geometry: Dict[Tuple[int, int], BrushGeometry],
                 textures: Dict[str, int], settings: ConversionSettings,
                 report: ConversionReport,
                 texture_errors: Optional[Dict[int, ResourceNotFound]] = None):
        self.entities = entities
        self.geometry = geometry
        self.textures = textures
        self.settings = settings
        self.report = report
        self.texture_errors = texture_errors or {}

    @classmethod
    def build(cls, entities: List[Entity], settings: Optional[ConversionSettings] = None,
              uv_provider: Optional[UvProvider] = None,
              resolver: Optional[TextureResolver] = None) -> "MapData":
        """
        Derive geometry for every brush of every entity.

        A texture the resolver cannot find fails only the brush that uses
        it: the brush keeps no faces, a TEX-001 issue is recorded and the
        error is kept in texture_errors for the owning entity.

        Args:
            entities: Parsed entities
            settings: Conversion settings; defaults when None
            uv_provider: Callable (vertex, normal, face, texture_size) -> (u, v);
                planar_uv when None
            resolver: Texture resolver used for texture sizes; every texture
                is treated as one 64x64 tile when None

        Returns:
            The populated MapData
        """
        settings = settings or ConversionSettings()
        uv_provider = uv_provider or planar_uv
        report = ConversionReport(stage=ConversionStage.FACES)
        textures: Dict[str, int] = {}
        sizes: Dict[str, Tuple[int, int]] = {}

        def texture_size(name: str) -> Tuple[int, int]:
            if name not in sizes:
                sizes[name] = resolver.texture_size(name) if resolver else DEFAULT_TEXTURE_SIZE
            return sizes[name]

        geometry: Dict[Tuple[int, int], BrushGeometry] = {}
        texture_errors: Dict[int, ResourceNotFound] = {}
        for entity_index, entity in enumerate(entities):
            for brush_index, brush in enumerate(entity.brushes):
                for face in brush.faces:
                    textures.setdefault(face.texture, len(textures))
                try:
                    geometry[(entity_index, brush_index)] = derive_brush(
                        brush, settings, uv_provider, texture_size, report, entity_index)
                except ResourceNotFound as e:
                    report.add_issue(rules.TEX_001.issue(
                        entity=entity_index, brush=brush.brush_id, texture=e.name,
                        extensions=", ".join(settings.texture_extensions)))
                    logger.warning(f"Entity {entity_index} brush {brush.brush_id}: {e}")
                    texture_errors.setdefault(entity_index, e)
                    geometry[(entity_index, brush_index)] = BrushGeometry(
                        brush.brush_id, tuple(f.texture for f in brush.faces),
                        tuple(f.extension for f in brush.faces), (), {})

        logger.info(
            f"Derived {len(geometry)} brushes, {len(textures)} textures, "
            f"{len(report.warnings)} skipped faces/planes"
        )
        return cls(entities, geometry, textures, settings, report, texture_errors)

    def texture_id(self, name: str) -> int:
        return self.textures[name]

    def brush_geometry(self, entity_index: int, brush_index: int) -> BrushGeometry:
        return self.geometry[(entity_index, brush_index)]

    def entity_brushes(self, entity_index: int) -> List[BrushGeometry]:
        count = len(self.entities[entity_index].brushes)
        return [self.geometry[(entity_index, i)] for i in range(count)]

    def entity_error(self, entity_index: int) -> Optional[ResourceNotFound]:
        """The first texture lookup that failed while deriving this entity."""
        return self.texture_errors.get(entity_index)


def derive_brush(brush: Brush, settings: ConversionSettings, uv_provider: UvProvider,
                 texture_size: Callable[[str], Tuple[int, int]],
                 report: ConversionReport, entity_index: Optional[int] = None) -> BrushGeometry:
    """Solve one brush: planes -> vertices -> faces -> triangles, normals, UVs."""
    eps = settings.epsilon

    planes: List[Plane] = []
    plane_faces: List[int] = []
    for face_index, face in enumerate(brush.faces):
        try:
            planes.append(plane_from_points(face.p1, face.p2, face.p3, eps))
            plane_faces.append(face_index)
        except DegenerateGeometry:
            report.add_issue(rules.GEOM_001.issue(
                entity=entity_index, brush=brush.brush_id, face=face_index,
                points=f"{face.p1} {face.p2} {face.p3}"))
            logger.warning(f"Brush {brush.brush_id} face {face_index}: collinear plane points")

    textures = tuple(face.texture for face in brush.faces)
    extensions = tuple(face.extension for face in brush.faces)

    if len(planes) < MIN_BRUSH_PLANES:
        report.add_issue(rules.GEOM_002.issue(
            entity=entity_index, brush=brush.brush_id, count=len(planes)))
        logger.warning(f"Brush {brush.brush_id} has only {len(planes)} usable planes")
        return BrushGeometry(brush.brush_id, textures, extensions, (), {})

    vertices = enumerate_vertices(planes, eps)
    faces, skipped = associate_vertices_with_planes(planes, vertices, eps)

    for skip in skipped:
        face_index = plane_faces[skip.plane_index]
        report.add_issue(rules.FACE_001.issue(
            entity=entity_index, brush=brush.brush_id, face=face_index,
            plane=skip.plane_index, count=skip.vertex_count))
        logger.warning(
            f"Brush {brush.brush_id} face {face_index}: "
            f"{skip.vertex_count} vertices, dropped"
        )

    derived: Dict[int, FaceGeometry] = {}
    for face in faces:
        face_index = plane_faces[face.plane_index]
        source = brush.faces[face_index]
        plane = planes[face.plane_index]
        try:
            tris = triangulate_face(face.vertices, plane.normal, 0, eps)
        except DegenerateGeometry as e:
            report.add_issue(rules.FACE_001.issue(
                entity=entity_index, brush=brush.brush_id, face=face_index,
                plane=face.plane_index, count=len(face.vertices)))
            logger.warning(f"Brush {brush.brush_id} face {face_index}: {e}")
            continue

        effects = classify_surface(source.texture, source.extension, settings)
        size = DEFAULT_TEXTURE_SIZE if effects.exclude_visual else texture_size(source.texture)
        derived[face_index] = FaceGeometry(
            face_index=face_index,
            texture=source.texture,
            extension=source.extension,
            normal=plane.normal,
            vertices=tuple(face.vertices),
            triangles=tuple(tris.outward),
            inverted_triangles=tuple(tris.inward),
            flat_normals=tuple(plane.normal for _ in face.vertices),
            smooth_normals=tuple(_average_normal(v, planes, eps) for v in face.vertices),
            uvs=tuple(uv_provider(v, plane.normal, source, size) for v in face.vertices),
        )

    return BrushGeometry(brush.brush_id, textures, extensions, tuple(vertices), derived)
