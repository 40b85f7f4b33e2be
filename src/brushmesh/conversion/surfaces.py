"""
Surface classification for brush faces.

Turns a face's texture name and optional Quake 2 extension record into
the set of effects the mesh splitter applies.  All texture-name and flag
checks live in SURFACE_RULES; rules run in order and each one only adds
effects on top of what earlier rules produced.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import IntFlag
from typing import Callable, List, Optional

from brushmesh.conversion.settings import ConversionSettings

logger = logging.getLogger(__name__)


class ContentFlags(IntFlag):
    """Quake 2 content bits consulted by the converter."""
    NONE = 0
    SKY = 1
    INVERT_FACES = 2


class SurfaceFlags(IntFlag):
    """Quake 2 surface bits consulted by the converter."""
    NONE = 0
    NO_CLIP = 1
    SMOOTH_SHADING = 2
    INVERT = 4


@dataclass(frozen=True)
class FaceExtension:
    """Quake 2 per-face extension record; all zero on Standard faces."""
    content_flags: int = 0
    surface_flags: int = 0
    value: float = 0.0


@dataclass(frozen=True)
class SurfaceEffects:
    exclude_visual: bool = False
    exclude_collision: bool = False
    invert_winding: bool = False
    append_inverted: bool = False
    use_emissive: bool = False
    use_smooth_normals: bool = False

    @property
    def excluded(self) -> bool:
        return self.exclude_visual and self.exclude_collision


@dataclass(frozen=True)
class SurfaceContext:
    """Inputs every rule sees: lowered texture name, flags and settings."""
    texture: str
    content_flags: ContentFlags
    surface_flags: SurfaceFlags
    settings: ConversionSettings


@dataclass(frozen=True)
class SurfaceRule:
    name: str
    applies: Callable[[SurfaceContext], bool]
    apply: Callable[[SurfaceEffects], SurfaceEffects]


def _is_skip(ctx: SurfaceContext) -> bool:
    return ctx.settings.skip_marker.lower() in ctx.texture


def _is_clip(ctx: SurfaceContext) -> bool:
    return ctx.texture == ctx.settings.clip_texture.lower()


def _is_sky(ctx: SurfaceContext) -> bool:
    if ctx.content_flags & (ContentFlags.SKY | ContentFlags.INVERT_FACES):
        return True
    return ctx.settings.is_sky(ctx.texture)


def _is_inverted(ctx: SurfaceContext) -> bool:
    return bool(ctx.surface_flags & SurfaceFlags.INVERT)


def _is_liquid(ctx: SurfaceContext) -> bool:
    return ctx.settings.is_liquid(ctx.texture)


def _is_smooth(ctx: SurfaceContext) -> bool:
    return bool(ctx.surface_flags & SurfaceFlags.SMOOTH_SHADING)


def _is_noclip(ctx: SurfaceContext) -> bool:
    return bool(ctx.surface_flags & SurfaceFlags.NO_CLIP)


SURFACE_RULES: List[SurfaceRule] = [
    SurfaceRule("skip", _is_skip,
                lambda e: replace(e, exclude_visual=True, exclude_collision=True)),
    SurfaceRule("clip", _is_clip,
                lambda e: replace(e, exclude_visual=True)),
    SurfaceRule("sky", _is_sky,
                lambda e: replace(e, invert_winding=True, use_emissive=True)),
    SurfaceRule("invert", _is_inverted,
                lambda e: replace(e, invert_winding=True)),
    SurfaceRule("liquid", _is_liquid,
                lambda e: replace(e, append_inverted=True, exclude_collision=True)),
    SurfaceRule("smooth", _is_smooth,
                lambda e: replace(e, use_smooth_normals=True)),
    SurfaceRule("noclip", _is_noclip,
                lambda e: replace(e, exclude_collision=True)),
]


def classify_surface(
    texture_name: str,
    extension: Optional[FaceExtension] = None,
    settings: Optional[ConversionSettings] = None,
) -> SurfaceEffects:
    """Evaluate SURFACE_RULES for one face.

    Args:
        texture_name: Face texture, compared case-insensitively
        extension: Quake 2 flags record, all zero when None
        settings: Reserved names and markers; defaults when None

    Returns:
        The accumulated SurfaceEffects
    """
    extension = extension or FaceExtension()
    ctx = SurfaceContext(
        texture=texture_name.lower(),
        content_flags=ContentFlags(extension.content_flags & 0x3),
        surface_flags=SurfaceFlags(extension.surface_flags & 0x7),
        settings=settings or ConversionSettings(),
    )

    effects = SurfaceEffects()
    for rule in SURFACE_RULES:
        if rule.applies(ctx):
            effects = rule.apply(effects)
            logger.debug(f"Surface rule '{rule.name}' matched texture '{texture_name}'")
    return effects
