"""
Brush to mesh conversion package.

Solves brush planes into vertices and faces, triangulates the faces,
splits each brush into per-texture visual/collision submeshes and
assembles them into a scene graph.
"""

from .plane_math import Plane, plane_from_points, solve_vertex, enumerate_vertices
from .face_builder import Face, associate_vertices_with_planes
from .triangulate import Triangulation, triangulate_face
from .surfaces import (
    ContentFlags,
    SurfaceFlags,
    FaceExtension,
    SurfaceEffects,
    classify_surface,
)
from .settings import ConversionSettings, EntityConfig, load_settings, save_settings
from .map_data import FacePlane, Brush, Entity, MapData
from .mesh_splitter import BrushNode, split_brush
from .scene import Mesh
from .textures import TextureResolver, planar_uv

__all__ = [
    'Plane',
    'plane_from_points',
    'solve_vertex',
    'enumerate_vertices',
    'Face',
    'associate_vertices_with_planes',
    'Triangulation',
    'triangulate_face',
    'ContentFlags',
    'SurfaceFlags',
    'FaceExtension',
    'SurfaceEffects',
    'classify_surface',
    'ConversionSettings',
    'EntityConfig',
    'load_settings',
    'save_settings',
    'FacePlane',
    'Brush',
    'Entity',
    'MapData',
    'BrushNode',
    'split_brush',
    'Mesh',
    'TextureResolver',
    'planar_uv',
]
