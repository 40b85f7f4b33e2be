"""
Texture lookup and default UV projection.

TextureResolver finds texture files under one or more data roots
(Textures/<name>.<ext>) and reads their pixel size with Pillow.
planar_uv is the default UV provider: idTech 1 style planar projection
along the dominant normal axis, with the face's rotation, scale and
offset applied, normalized by the texture size.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Dict, Iterable, List, Sequence, Tuple

from PIL import Image

from brushmesh.validation.core import ResourceNotFound

logger = logging.getLogger(__name__)

Vec2 = Tuple[float, float]
Vec3 = Tuple[float, float, float]

TEXTURE_DIR = "Textures"


class TextureResolver:
    """Resolves texture names to files under a set of data roots.

    Lookups are cached; a name that cannot be found raises ResourceNotFound
    every time it is asked for.
    """

    def __init__(self, search_paths: Iterable[Path],
                 extensions: Sequence[str] = ("dds", "tga", "png")):
        self.search_paths: List[Path] = [Path(p) for p in search_paths]
        self.extensions = tuple(extensions)
        self._found: Dict[str, Path] = {}
        self._sizes: Dict[str, Tuple[int, int]] = {}

    def _candidates(self, name: str) -> List[Path]:
        names = [name] if name == name.lower() else [name, name.lower()]
        return [
            root / TEXTURE_DIR / f"{n}.{ext}"
            for root in self.search_paths
            for ext in self.extensions
            for n in names
        ]

    def resolve(self, name: str) -> Path:
        """
        Find the file for a texture.

        Args:
            name: Texture name as written on the brush face

        Returns:
            Path to the first matching file

        Raises:
            ResourceNotFound: If no search path holds the texture
        """
        if name in self._found:
            return self._found[name]
        candidates = self._candidates(name)
        for candidate in candidates:
            if candidate.is_file():
                logger.debug(f"Resolved texture {name} -> {candidate}")
                self._found[name] = candidate
                return candidate
        logger.error(f"Texture not found: {name}")
        raise ResourceNotFound(name, [str(c) for c in candidates])

    def source_name(self, name: str) -> str:
        """Texture reference as written into a texture property (<name>.<ext>)."""
        path = self.resolve(name)
        return f"{name}{path.suffix}"

    def texture_size(self, name: str) -> Tuple[int, int]:
        if name not in self._sizes:
            with Image.open(self.resolve(name)) as img:
                self._sizes[name] = img.size
            logger.info(f"Mapping texture {name} with size {self._sizes[name]}")
        return self._sizes[name]


def planar_uv(vertex: Vec3, normal: Vec3, face, texture_size: Tuple[int, int]) -> Vec2:
    """Compute UV coordinates using idTech planar projection.

    Projects the vertex onto a 2D plane based on the dominant axis of the
    normal, then applies rotation, scale and offset from the face.

    Args:
        vertex: 3D vertex position (x, y, z)
        normal: Outward face normal (nx, ny, nz)
        face: FacePlane carrying offsets, rotation and scales
        texture_size: (width, height) in pixels

    Returns:
        UV coordinates (u, v)
    """
    x, y, z = vertex
    nx, ny, nz = normal

    abs_nx, abs_ny, abs_nz = abs(nx), abs(ny), abs(nz)
    if abs_nz >= abs_nx and abs_nz >= abs_ny:
        # Z-dominant (floor/ceiling): project to XY plane
        u, v = x, -y
    elif abs_nx >= abs_ny:
        # X-dominant (E/W wall): project to YZ plane
        u, v = y, -z
    else:
        # Y-dominant (N/S wall): project to XZ plane
        u, v = x, -z

    if face.rotation != 0.0:
        rad = math.radians(face.rotation)
        cos_r = math.cos(rad)
        sin_r = math.sin(rad)
        u, v = u * cos_r - v * sin_r, u * sin_r + v * cos_r

    x_scale = face.x_scale if face.x_scale != 0 else 1.0
    y_scale = face.y_scale if face.y_scale != 0 else 1.0
    width, height = texture_size

    u = (u / x_scale + face.x_offset) / width
    v = (v / y_scale + face.y_offset) / height
    return (u, v)
