"""
Scene graph assembly for one entity.

A Mesh owns a SceneStream: a flat arena of typed records (nodes, shapes,
geometry data, render properties) addressed by integer links.  Brush
nodes are attached one by one; visual shapes hang off the visual root,
collision shapes off a collision root created on first use.  finalize()
computes the entity's placement anchor and re-centers the geometry on it.

Anchor policy: the anchor is the mean of the centroids of every attached
submesh that has visual geometry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple, Type, TypeVar

import numpy as np
from scipy.spatial.transform import Rotation

from brushmesh.conversion.mesh_splitter import BrushNode, ShapeBuffers
from brushmesh.conversion.plane_math import Vec3
from brushmesh.conversion.settings import Color3, ConversionSettings, EntityConfig
from brushmesh.conversion.textures import TextureResolver

logger = logging.getLogger(__name__)

T = TypeVar("T")

# MaterialProperty.flags bit marking a material as specular-free flat color
MATERIAL_FLAG_EMISSIVE = 1


# ---------------------------------------------------------------------------
# Scene records
# ---------------------------------------------------------------------------

@dataclass
class SceneNode:
    name: str = ""
    children: List[int] = field(default_factory=list)
    scale: float = 1.0


@dataclass
class CollisionRoot:
    name: str = "collision"
    children: List[int] = field(default_factory=list)


@dataclass
class TriShapeData:
    """Geometry block: float32 positions/normals/UVs, uint16 triangles."""
    vertices: np.ndarray
    triangles: np.ndarray
    normals: Optional[np.ndarray] = None
    uvs: Optional[np.ndarray] = None


@dataclass
class TriShape:
    name: str = ""
    data: Optional[int] = None
    properties: List[int] = field(default_factory=list)


@dataclass
class TextureProperty:
    source: str


@dataclass
class MaterialProperty:
    ambient_color: Optional[Color3] = None
    diffuse_color: Optional[Color3] = None
    emissive_color: Optional[Color3] = None
    alpha: Optional[float] = None
    flags: int = 0


@dataclass
class AlphaProperty:
    blend: bool = False
    test: bool = False
    threshold: int = 0
    no_sort: bool = False


class SceneStream:
    """Arena of scene records; links are indices into the arena."""

    def __init__(self):
        self.objects: List[object] = []
        self.roots: List[int] = []

    def insert(self, obj: object) -> int:
        self.objects.append(obj)
        return len(self.objects) - 1

    def get(self, link: int, kind: Optional[Type[T]] = None) -> T:
        obj = self.objects[link]
        if kind is not None and not isinstance(obj, kind):
            raise TypeError(f"Link {link} is {type(obj).__name__}, not {kind.__name__}")
        return obj

    def objects_of_type(self, kind: Type[T]) -> Iterator[T]:
        return (obj for obj in self.objects if isinstance(obj, kind))

    def __len__(self) -> int:
        return len(self.objects)


def _data_block(buffers: ShapeBuffers) -> TriShapeData:
    return TriShapeData(
        vertices=buffers.vertices.copy(),
        triangles=buffers.triangles.copy(),
        normals=None if buffers.normals is None else buffers.normals.copy(),
        uvs=None if buffers.uvs is None else buffers.uvs.copy(),
    )


# ---------------------------------------------------------------------------
# Mesh
# ---------------------------------------------------------------------------

class Mesh:
    """Scene graph for one output entity.

    Attributes:
        stream: The record arena
        visual_root: Link of the visual root node
        collision_root: Link of the collision root, None until collision
            geometry is attached
        node_centroids: Centroid of every attached visual submesh
        anchor: Placement anchor, set by finalize()
        rotation: Euler angles (degrees) undone by finalize(), if any
    """

    def __init__(self, settings: Optional[ConversionSettings] = None,
                 resolver: Optional[TextureResolver] = None):
        self.settings = settings or ConversionSettings()
        self.resolver = resolver
        self.stream = SceneStream()

        self.visual_root = self.stream.insert(SceneNode(name="visual", scale=self.settings.map_scale))
        root = self.stream.insert(SceneNode(name="root", children=[self.visual_root]))
        self.stream.roots = [root]

        self.collision_root: Optional[int] = None
        self.node_centroids: List[Vec3] = []
        self.anchor: Optional[Vec3] = None
        self.rotation: Optional[Vec3] = None
        self._textures: Dict[str, str] = {}

    @classmethod
    def from_nodes(cls, nodes: List[BrushNode], settings: Optional[ConversionSettings] = None,
                   resolver: Optional[TextureResolver] = None) -> "Mesh":
        mesh = cls(settings, resolver)
        for node in nodes:
            mesh.attach(node)
        return mesh

    # -----------------------------------------------------------------
    # Attachment
    # -----------------------------------------------------------------

    def _ensure_collision_root(self) -> int:
        if self.collision_root is None:
            self.collision_root = self.stream.insert(CollisionRoot())
            self.stream.get(self.visual_root, SceneNode).children.append(self.collision_root)
        return self.collision_root

    def attach(self, node: BrushNode) -> None:
        """Insert a brush node's shapes under the visual and collision roots.

        When the collision side has as many vertices as the visual side the
        collision shape shares the visual data block.

        Raises:
            ResourceNotFound: If a resolver is set and the texture is missing
        """
        vis_data: Optional[int] = None

        if node.has_visual:
            self.node_centroids.append(node.centroid)
            shape_link = self.stream.insert(TriShape(name=node.texture))
            self._bind_texture(shape_link, node.texture)
            if node.use_emissive:
                self._bind_emissive(shape_link)
            self._bind_material(shape_link, node.material)

            vis_data = self.stream.insert(_data_block(node.visual))
            self.stream.get(shape_link, TriShape).data = vis_data
            self.stream.get(self.visual_root, SceneNode).children.append(shape_link)

        if node.has_collision:
            col_link = self.stream.insert(TriShape(name=f"{node.texture}:collision"))
            if vis_data is not None and node.collision.vertex_count == node.visual.vertex_count:
                col_data = vis_data
            else:
                col_data = self.stream.insert(_data_block(node.collision))
            self.stream.get(col_link, TriShape).data = col_data
            root = self._ensure_collision_root()
            self.stream.get(root, CollisionRoot).children.append(col_link)

    def _bind_texture(self, shape_link: int, texture: str) -> None:
        if texture not in self._textures:
            self._textures[texture] = (
                self.resolver.source_name(texture) if self.resolver else texture
            )
        prop = self.stream.insert(TextureProperty(source=self._textures[texture]))
        self.stream.get(shape_link, TriShape).properties.append(prop)

    def _bind_emissive(self, shape_link: int) -> None:
        mat = MaterialProperty(
            emissive_color=tuple(self.settings.sky_emissive_color),
            flags=MATERIAL_FLAG_EMISSIVE,
        )
        self.stream.get(shape_link, TriShape).properties.append(self.stream.insert(mat))

    def _bind_material(self, shape_link: int, config: EntityConfig) -> None:
        shape = self.stream.get(shape_link, TriShape)
        if config.has_material:
            shape.properties.append(self.stream.insert(MaterialProperty(
                ambient_color=config.ambient_color,
                diffuse_color=config.diffuse_color,
                emissive_color=config.emissive_color,
                alpha=config.material_alpha,
            )))
        if config.has_alpha:
            shape.properties.append(self.stream.insert(AlphaProperty(
                blend=bool(config.alpha_blend),
                test=bool(config.alpha_test),
                threshold=config.alpha_test_threshold or 0,
                no_sort=bool(config.no_sort),
            )))

    # -----------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------

    def visual_shapes(self) -> List[TriShape]:
        children = self.stream.get(self.visual_root, SceneNode).children
        return [self.stream.get(c) for c in children if isinstance(self.stream.get(c), TriShape)]

    def collision_shapes(self) -> List[TriShape]:
        if self.collision_root is None:
            return []
        root = self.stream.get(self.collision_root, CollisionRoot)
        return [self.stream.get(c, TriShape) for c in root.children]

    def placement(self) -> Tuple[Optional[Vec3], Optional[Vec3]]:
        """(anchor, rotation) for the caller's placement record."""
        return self.anchor, self.rotation

    # -----------------------------------------------------------------
    # Finalization
    # -----------------------------------------------------------------

    @staticmethod
    def centroid(points: List[Vec3]) -> Vec3:
        if not points:
            return (0.0, 0.0, 0.0)
        c = np.asarray(points, dtype=np.float64).mean(axis=0)
        return (float(c[0]), float(c[1]), float(c[2]))

    def finalize(self, rotation: Optional[Vec3] = None) -> Vec3:
        """Compute the anchor and re-express geometry around it.

        Every vertex has the anchor subtracted; when a rotation (Euler
        degrees, xyz) is given, its inverse is then applied so the
        geometry sits in the entity's local frame.  Shared data blocks
        are transformed once, and the submesh centroids move with the
        geometry.  Calling finalize again leaves everything in place and
        returns the anchor from the first call.

        Returns:
            The anchor point
        """
        if self.anchor is not None:
            return self.anchor

        anchor = self.centroid(self.node_centroids)
        inverse = None
        if rotation is not None:
            inverse = Rotation.from_euler("xyz", rotation, degrees=True).inv()

        offset = np.asarray(anchor, dtype=np.float64)
        for data in self.stream.objects_of_type(TriShapeData):
            verts = data.vertices.astype(np.float64) - offset
            if inverse is not None:
                verts = inverse.apply(verts)
                if data.normals is not None:
                    data.normals = inverse.apply(data.normals.astype(np.float64)).astype(np.float32)
            data.vertices = verts.astype(np.float32)

        if self.node_centroids:
            centroids = np.asarray(self.node_centroids, dtype=np.float64) - offset
            if inverse is not None:
                centroids = inverse.apply(centroids)
            self.node_centroids = [(float(x), float(y), float(z)) for x, y, z in centroids]

        self.anchor = anchor
        self.rotation = tuple(rotation) if rotation is not None else None
        logger.debug(f"Finalized mesh: {len(self.node_centroids)} submeshes, anchor {anchor}")
        return anchor
