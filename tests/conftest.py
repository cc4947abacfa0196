"""Pytest configuration for path tracer tests.

This module provides shared fixtures for all test modules, including
Taichi initialization which must happen once per session.
"""

import pytest
import taichi as ti


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Using session scope prevents multiple ti.init() calls which can cause
    segmentation faults due to Taichi runtime conflicts.
    """
    ti.init(arch=ti.cpu, random_seed=42)
    yield


@pytest.fixture(autouse=True)
def clear_all_scene_data():
    """Clear geometry, materials and lights around each test."""
    # Import here so Taichi is initialized before any field is declared
    from src.pathtracer.materials.material import clear_materials
    from src.pathtracer.scene.intersection import clear_scene
    from src.pathtracer.scene.lights import clear_lights

    def _clear_all():
        clear_scene()
        clear_materials()
        clear_lights()

    _clear_all()
    yield
    _clear_all()


@pytest.fixture
def simple_camera():
    """Small camera looking down -z from z = 5."""
    from src.pathtracer.camera.camera import Camera

    return Camera(
        resolution=(8, 6),
        fovy=30.0,
        eye=(0.0, 0.0, 5.0),
        look_at=(0.0, 0.0, 0.0),
        up=(0.0, 1.0, 0.0),
        iterations=4,
        depth=4,
    )
