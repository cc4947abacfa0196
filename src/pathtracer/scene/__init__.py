"""Scene module for geometry storage, lights and scene loading.

Components:
    intersection: Geometry fields and the linear nearest-hit scan
    lights: Light list and one-sample direct lighting
    manager: SceneManager coordinating materials, geometry, lights and motion
    loader: Reader for the MATERIAL / CAMERA / OBJECT scene file format
    cornell_box: Built-in Cornell box scene

Example:
    >>> from src.pathtracer.scene import load_scene
    >>> scene, camera = load_scene("examples/scenes/cornell.txt")
"""

from .cornell_box import CornellBoxParams, create_cornell_box_scene
from .intersection import (
    MAX_GEOMETRY,
    GeometryType,
    SceneHitRecord,
    add_geometry,
    clear_scene,
    get_geometry_count,
    intersect_scene,
    is_occluded,
    update_geometry_transform,
)
from .lights import (
    MAX_LIGHTS,
    add_light,
    clear_lights,
    direct_light_from_point,
    estimate_direct_lighting,
    get_light_count,
    sample_light_point,
)
from .loader import SceneDescription, SceneFormatError, build_scene, load_scene, parse_scene
from .manager import GeometryInfo, MaterialInfo, SceneConfig, SceneManager

__all__ = [
    # Intersection
    "MAX_GEOMETRY",
    "GeometryType",
    "SceneHitRecord",
    "add_geometry",
    "update_geometry_transform",
    "clear_scene",
    "get_geometry_count",
    "intersect_scene",
    "is_occluded",
    # Lights
    "MAX_LIGHTS",
    "add_light",
    "clear_lights",
    "get_light_count",
    "sample_light_point",
    "direct_light_from_point",
    "estimate_direct_lighting",
    # Manager
    "SceneManager",
    "MaterialInfo",
    "GeometryInfo",
    "SceneConfig",
    # Loader
    "SceneDescription",
    "SceneFormatError",
    "parse_scene",
    "build_scene",
    "load_scene",
    # Cornell box
    "CornellBoxParams",
    "create_cornell_box_scene",
]
