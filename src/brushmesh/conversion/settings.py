"""
Conversion settings and typed entity properties.

ConversionSettings carries every tolerance, scale factor and reserved
texture name the pipeline consults, so nothing downstream reads a module
global.  Settings round-trip through JSON for per-project overrides.

EntityConfig is the typed view over an entity's free-form property bag.
Every recognized key parses to a value or stays unset (None); a key that
is present but malformed raises InvalidProperty instead of defaulting.
"""

from __future__ import annotations
import json
import logging
from dataclasses import dataclass, fields, asdict
from pathlib import Path
from typing import Dict, FrozenSet, Mapping, Optional, Tuple

from brushmesh.validation.core import ConfigError, InvalidProperty

logger = logging.getLogger(__name__)

Color3 = Tuple[float, float, float]

# Largest vertex count one 16-bit indexed submesh can address
U16_VERTEX_LIMIT = 65535

# Fallback texture size used when no resolver can report one
DEFAULT_TEXTURE_SIZE = (64, 64)


@dataclass
class ConversionSettings:
    """Tolerances, scale and reserved names for the brush pipeline.

    Attributes:
        epsilon: Tolerance for determinants, plane containment and vertex merging
        map_scale: Scale written on the visual root node
        swap_up_axis: Re-express editor Z-up coordinates as engine Y-up on emission
        skip_marker: Substring marking faces excluded from all output
        clip_texture: Texture name marking collision-only faces
        sky_textures: Texture names treated as sky (inverted, emissive)
        liquid_markers: Substrings marking double-sided, non-colliding liquids
        sky_emissive_color: Flat emissive color bound to sky submeshes
        texture_extensions: Extensions tried, in order, when resolving textures
    """

    epsilon: float = 1e-10
    map_scale: float = 2.0
    swap_up_axis: bool = True

    skip_marker: str = "skip"
    clip_texture: str = "clip"
    sky_textures: FrozenSet[str] = frozenset({"sky5_blu"})
    liquid_markers: Tuple[str, ...] = ("slime", "water", "lava", "mwat")

    sky_emissive_color: Color3 = (1.0, 0.0, 1.0)
    texture_extensions: Tuple[str, ...] = ("dds", "tga", "png")

    def is_sky(self, texture_name: str) -> bool:
        lowered = texture_name.lower()
        return any(lowered == sky.lower() for sky in self.sky_textures)

    def is_liquid(self, texture_name: str) -> bool:
        lowered = texture_name.lower()
        return any(marker in lowered for marker in self.liquid_markers)


def _settings_to_dict(settings: ConversionSettings) -> Dict[str, object]:
    data = asdict(settings)
    data["sky_textures"] = sorted(settings.sky_textures)
    data["liquid_markers"] = list(settings.liquid_markers)
    data["sky_emissive_color"] = list(settings.sky_emissive_color)
    data["texture_extensions"] = list(settings.texture_extensions)
    return data


def _dict_to_settings(data: Mapping[str, object]) -> ConversionSettings:
    known = {f.name for f in fields(ConversionSettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown settings keys: {', '.join(unknown)}")

    kwargs = dict(data)
    if "sky_textures" in kwargs:
        kwargs["sky_textures"] = frozenset(kwargs["sky_textures"])
    for key in ("liquid_markers", "sky_emissive_color", "texture_extensions"):
        if key in kwargs:
            kwargs[key] = tuple(kwargs[key])
    return ConversionSettings(**kwargs)


def load_settings(path: Path) -> ConversionSettings:
    """
    Load settings from a JSON file.

    Keys missing from the file keep their defaults; unknown keys are rejected.

    Args:
        path: Path to the settings file

    Returns:
        The loaded ConversionSettings

    Raises:
        ConfigError: If the file cannot be read or parsed, or has unknown keys
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to load settings from {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Settings file {path} must contain a JSON object")

    settings = _dict_to_settings(data)
    logger.debug(f"Loaded settings from {path}")
    return settings


def save_settings(settings: ConversionSettings, path: Path) -> Path:
    """
    Save settings to a JSON file.

    Returns:
        Path to the saved file
    """
    path = Path(path)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(_settings_to_dict(settings), f, indent=2)
    logger.info(f"Saved settings to {path}")
    return path


# ---------------------------------------------------------------------------
# Entity properties
# ---------------------------------------------------------------------------

def _parse_floats(key: str, value: str, count: int) -> Tuple[float, ...]:
    parts = value.split()
    if len(parts) != count:
        raise InvalidProperty(key, value, f"expected {count} numbers")
    try:
        return tuple(float(p) for p in parts)
    except ValueError as e:
        raise InvalidProperty(key, value, str(e)) from e


def _parse_float(key: str, value: str, low: float, high: float) -> float:
    try:
        result = float(value)
    except ValueError as e:
        raise InvalidProperty(key, value, str(e)) from e
    if not low <= result <= high:
        raise InvalidProperty(key, value, f"outside {low}..{high}")
    return result


def _parse_int(key: str, value: str, low: int, high: int) -> int:
    try:
        result = int(value.strip())
    except ValueError as e:
        raise InvalidProperty(key, value, str(e)) from e
    if not low <= result <= high:
        raise InvalidProperty(key, value, f"outside {low}..{high}")
    return result


def _parse_flag(key: str, value: str) -> bool:
    return _parse_int(key, value, 0, 1) == 1


@dataclass(frozen=True)
class EntityConfig:
    """Typed view of the entity properties the mesh pipeline understands.

    Every field is None when its key is absent from the property bag.
    """

    ambient_color: Optional[Color3] = None
    diffuse_color: Optional[Color3] = None
    emissive_color: Optional[Color3] = None
    material_alpha: Optional[float] = None
    alpha_blend: Optional[bool] = None
    alpha_test: Optional[bool] = None
    alpha_test_threshold: Optional[int] = None
    no_sort: Optional[bool] = None
    mangle: Optional[Color3] = None

    @classmethod
    def from_properties(cls, properties: Mapping[str, str]) -> "EntityConfig":
        """Parse the recognized keys out of an entity property bag.

        Raises:
            InvalidProperty: If a recognized key holds an unparseable value
        """
        parsed: Dict[str, object] = {}
        for key in ("ambient_color", "diffuse_color", "emissive_color", "mangle"):
            if key in properties:
                parsed[key] = _parse_floats(key, properties[key], 3)
        if "material_alpha" in properties:
            parsed["material_alpha"] = _parse_float(
                "material_alpha", properties["material_alpha"], 0.0, 1.0)
        for key in ("alpha_blend", "alpha_test", "no_sort"):
            if key in properties:
                parsed[key] = _parse_flag(key, properties[key])
        if "alpha_test_threshold" in properties:
            parsed["alpha_test_threshold"] = _parse_int(
                "alpha_test_threshold", properties["alpha_test_threshold"], 0, 255)
        return cls(**parsed)

    @property
    def has_material(self) -> bool:
        return any(v is not None for v in (
            self.ambient_color, self.diffuse_color,
            self.emissive_color, self.material_alpha,
        ))

    @property
    def has_alpha(self) -> bool:
        return any(v is not None for v in (
            self.alpha_blend, self.alpha_test,
            self.alpha_test_threshold, self.no_sort,
        ))
