from __future__ import annotations

import json
from pathlib import Path

import pytest

from brushmesh.conversion.settings import (
    ConversionSettings,
    EntityConfig,
    load_settings,
    save_settings,
)
from brushmesh.validation.core import ConfigError, InvalidProperty


def test_defaults() -> None:
    settings = ConversionSettings()
    assert settings.epsilon == 1e-10
    assert settings.map_scale == 2.0
    assert settings.is_sky("SKY5_BLU")
    assert settings.is_liquid("Water_01")
    assert not settings.is_liquid("wood01")


def test_settings_round_trip(tmp_path: Path) -> None:
    settings = ConversionSettings(
        map_scale=1.5,
        sky_textures=frozenset({"sky1", "sky2"}),
        liquid_markers=("goo",),
        sky_emissive_color=(0.0, 0.5, 1.0),
    )
    path = save_settings(settings, tmp_path / "settings.json")
    assert load_settings(path) == settings


def test_partial_file_keeps_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"epsilon": 1e-6}), encoding="utf-8")

    settings = load_settings(path)
    assert settings.epsilon == 1e-6
    assert settings.clip_texture == "clip"


def test_unknown_keys_are_rejected(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"epsilon": 1e-6, "scale": 3}), encoding="utf-8")

    with pytest.raises(ConfigError, match="scale"):
        load_settings(path)


def test_unreadable_settings(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_settings(tmp_path / "missing.json")

    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_settings(bad)

    listed = tmp_path / "list.json"
    listed.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_settings(listed)


def test_entity_config_absent_keys_are_unset() -> None:
    config = EntityConfig.from_properties({"classname": "func_wall", "targetname": "door"})
    assert config == EntityConfig()
    assert not config.has_material
    assert not config.has_alpha
    assert config.mangle is None


def test_entity_config_parses_recognized_keys() -> None:
    config = EntityConfig.from_properties({
        "ambient_color": "0.1 0.2 0.3",
        "emissive_color": "1 1 1",
        "material_alpha": "0.5",
        "alpha_test": "1",
        "alpha_test_threshold": " 200 ",
        "no_sort": "0",
        "mangle": "0 90 0",
    })
    assert config.ambient_color == (0.1, 0.2, 0.3)
    assert config.emissive_color == (1.0, 1.0, 1.0)
    assert config.material_alpha == 0.5
    assert config.alpha_test is True
    assert config.alpha_test_threshold == 200
    assert config.no_sort is False
    assert config.mangle == (0.0, 90.0, 0.0)
    assert config.has_material and config.has_alpha


@pytest.mark.parametrize("key,value", [
    ("ambient_color", "0.1 0.2"),
    ("diffuse_color", "red green blue"),
    ("material_alpha", "1.5"),
    ("material_alpha", "opaque"),
    ("alpha_blend", "2"),
    ("alpha_test_threshold", "300"),
    ("mangle", ""),
])
def test_entity_config_malformed_values_raise(key: str, value: str) -> None:
    with pytest.raises(InvalidProperty) as exc:
        EntityConfig.from_properties({key: value})
    assert exc.value.key == key
    assert exc.value.code == "PROP-001"
