"""Tests for the wavefront kernels.

This module tests the per-bounce pipeline steps:
- Primary ray generation into the path pool
- Nearest-hit intersection into the hit records
- Shading rules (miss, light, scatter, bounce budget, direct lighting)

Note: Imports are done inside test methods so that Taichi is initialized by
conftest.py before any module declaring fields is imported.
"""

import numpy as np
import pytest


def _fill_slot(ctx, slot, paths, hits):
    """Write path and hit arrays for the first len(paths) lanes of a slot."""
    n = len(paths)

    def put(field, values, width=None):
        shape = (2, ctx.capacity) if width is None else (2, ctx.capacity, width)
        data = np.zeros(shape, dtype=field.to_numpy().dtype)
        data[slot, :n] = values
        field.from_numpy(data)

    put(ctx.path_origin, [p["origin"] for p in paths], 3)
    put(ctx.path_direction, [p["direction"] for p in paths], 3)
    put(ctx.path_color, [p["color"] for p in paths], 3)
    put(ctx.path_pixel, list(range(n)))
    put(ctx.path_remaining, [p["remaining"] for p in paths])
    put(ctx.hit_t, [h["t"] for h in hits])
    put(ctx.hit_point, [h.get("point", (0.0, 0.0, 0.0)) for h in hits], 3)
    put(ctx.hit_normal, [h.get("normal", (0.0, 1.0, 0.0)) for h in hits], 3)
    put(ctx.hit_material, [h.get("material", -1) for h in hits])
    put(ctx.hit_outside, [1] * n)


def _path(remaining=3, color=(0.5, 0.5, 0.5)):
    return {
        "origin": (0.0, 5.0, 0.0),
        "direction": (0.0, -1.0, 0.0),
        "color": color,
        "remaining": remaining,
    }


class TestGenerateRays:
    """Tests for WavefrontIntegrator.generate_rays."""

    def test_one_path_per_pixel(self, simple_camera):
        """Test pixel indices, budgets and throughput of fresh paths."""
        from src.pathtracer.camera.camera import setup_camera
        from src.pathtracer.core.context import RenderContext
        from src.pathtracer.core.integrator import WavefrontIntegrator

        setup_camera(simple_camera)
        with RenderContext(simple_camera.pixel_count) as ctx:
            integrator = WavefrontIntegrator(ctx)
            count = integrator.generate_rays(0, 0, 8, 6, 4, False, False, 0)
            paths = ctx.paths_numpy(0, count)

        assert count == 48
        assert paths["pixel"].tolist() == list(range(48))
        assert np.all(paths["remaining"] == 4)
        np.testing.assert_allclose(paths["color"], 1.0)
        np.testing.assert_allclose(paths["origin"], np.tile([0.0, 0.0, 5.0], (48, 1)), atol=1e-6)
        # Pixel (4, 3) is the image centre
        np.testing.assert_allclose(paths["direction"][4 + 3 * 8], [0.0, 0.0, -1.0], atol=1e-6)

    def test_jitter_stays_inside_pixel(self, simple_camera):
        """Test that antialiased rays differ per iteration but stay in their pixel."""
        from src.pathtracer.camera.camera import setup_camera
        from src.pathtracer.core.context import RenderContext
        from src.pathtracer.core.integrator import WavefrontIntegrator

        setup_camera(simple_camera)
        with RenderContext(48) as ctx:
            integrator = WavefrontIntegrator(ctx)
            integrator.generate_rays(0, 0, 8, 6, 4, False, False, 0)
            centre = ctx.paths_numpy(0, 48)["direction"]
            integrator.generate_rays(0, 1, 8, 6, 4, True, False, 0)
            first = ctx.paths_numpy(0, 48)["direction"]
            integrator.generate_rays(0, 2, 8, 6, 4, True, False, 0)
            second = ctx.paths_numpy(0, 48)["direction"]

        assert not np.allclose(first, second)
        # Within one pixel of the unjittered corner direction
        pixel_angle = 2.0 * np.tan(np.radians(30.0)) / 6
        assert np.max(np.abs(first - centre)) < 1.5 * pixel_angle

    def test_capacity_too_small(self, simple_camera):
        """Test that an undersized context is rejected."""
        from src.pathtracer.camera.camera import setup_camera
        from src.pathtracer.core.context import RenderContext
        from src.pathtracer.core.integrator import WavefrontIntegrator

        setup_camera(simple_camera)
        with RenderContext(10) as ctx:
            with pytest.raises(ValueError, match="context holds 10"):
                WavefrontIntegrator(ctx).generate_rays(0, 0, 8, 6, 4, True, False, 0)


class TestComputeIntersections:
    """Tests for WavefrontIntegrator.compute_intersections."""

    def test_hit_records(self):
        """Test that hits and misses are written per lane."""
        from src.pathtracer.core.context import RenderContext
        from src.pathtracer.core.integrator import WavefrontIntegrator
        from src.pathtracer.scene.manager import SceneManager

        scene = SceneManager()
        white = scene.add_material(color=(0.5, 0.5, 0.5))
        scene.add_cube(translation=(0.0, 0.0, 0.0), scale=(2.0, 2.0, 2.0), material_id=white)

        with RenderContext(2) as ctx:
            hit_path = _path()
            miss_path = dict(_path(), direction=(0.0, 1.0, 0.0))
            _fill_slot(ctx, 1, [hit_path, miss_path], [{"t": 0.0}, {"t": 0.0}])
            WavefrontIntegrator(ctx).compute_intersections(1, 2)
            hits = ctx.hits_numpy(1, 2)

        assert hits["t"][0] == pytest.approx(4.0, abs=1e-4)
        assert hits["material"].tolist() == [white, -1]
        np.testing.assert_allclose(hits["normal"][0], [0.0, 1.0, 0.0], atol=1e-5)
        assert hits["t"][1] < 0.0


class TestShade:
    """Tests for WavefrontIntegrator.shade."""

    def _shade(self, paths, hits, direct_lighting=False):
        from src.pathtracer.core.context import RenderContext
        from src.pathtracer.core.integrator import WavefrontIntegrator

        with RenderContext(len(paths)) as ctx:
            _fill_slot(ctx, 0, paths, hits)
            WavefrontIntegrator(ctx).shade(0, len(paths), 0, 0, direct_lighting, 0)
            return ctx.paths_numpy(0, len(paths))

    def test_shading_rules(self):
        """Test misses, lights and scattering side by side."""
        from src.pathtracer.scene.manager import SceneManager

        scene = SceneManager()
        light = scene.add_material(color=(1.0, 0.5, 0.25), emittance=2.0)
        white = scene.add_material(color=(0.8, 0.6, 0.4))

        paths = self._shade(
            [_path(), _path(), _path(remaining=3)],
            [{"t": -1.0}, {"t": 5.0, "material": light}, {"t": 5.0, "material": white}],
        )

        # Miss: black and terminated
        np.testing.assert_allclose(paths["color"][0], [0.0, 0.0, 0.0])
        assert paths["remaining"][0] == 0
        # Light: throughput times color * emittance, terminated
        np.testing.assert_allclose(paths["color"][1], [1.0, 0.5, 0.25], atol=1e-6)
        assert paths["remaining"][1] == 0
        # Diffuse: throughput times albedo, one bounce spent, leaves upward
        np.testing.assert_allclose(paths["color"][2], [0.4, 0.3, 0.2], atol=1e-6)
        assert paths["remaining"][2] == 2
        assert paths["direction"][2][1] > 0.0
        assert paths["origin"][2][1] > 0.0

    def test_mirror_keeps_throughput(self):
        """Test that a mirror reflects without attenuating the path."""
        from src.pathtracer.scene.manager import SceneManager

        scene = SceneManager()
        mirror = scene.add_material(color=(0.2, 0.2, 0.2), reflective=1.0)

        paths = self._shade([_path(remaining=3)], [{"t": 5.0, "material": mirror}])

        np.testing.assert_allclose(paths["color"][0], [0.5, 0.5, 0.5], atol=1e-6)
        np.testing.assert_allclose(paths["direction"][0], [0.0, 1.0, 0.0], atol=1e-5)
        assert paths["remaining"][0] == 2

    def test_last_bounce_without_light_keeps_throughput(self):
        """Test that a path spending its last bounce keeps its throughput."""
        from src.pathtracer.scene.manager import SceneManager

        scene = SceneManager()
        white = scene.add_material(color=(0.8, 0.6, 0.4))

        paths = self._shade([_path(remaining=1, color=(1.0, 1.0, 1.0))], [{"t": 5.0, "material": white}])

        assert paths["remaining"][0] == 0
        np.testing.assert_allclose(paths["color"][0], [0.8, 0.6, 0.4], atol=1e-6)

    def test_last_bounce_with_direct_lighting(self):
        """Test that the direct-light estimate is added to the throughput."""
        from src.pathtracer.scene.manager import SceneManager

        scene = SceneManager()
        light = scene.add_material(color=(1.0, 1.0, 1.0), emittance=2.0)
        white = scene.add_material(color=(0.8, 0.6, 0.4))
        scene.add_cube(translation=(0.0, 5.0, 0.0), material_id=light)

        paths = self._shade(
            [_path(remaining=1, color=(1.0, 1.0, 1.0))],
            [{"t": 5.0, "material": white}],
            direct_lighting=True,
        )

        assert paths["remaining"][0] == 0
        added = paths["color"][0] - np.array([0.8, 0.6, 0.4])
        # A white light adds the same amount to every channel
        assert 0.0 < added[0] <= 2.0 + 1e-5
        assert added[1] == pytest.approx(added[0], abs=1e-5)
        assert added[2] == pytest.approx(added[0], abs=1e-5)


class TestReleasedContext:
    """Tests for kernels launched on a released context."""

    def test_every_step_raises(self, simple_camera):
        """Test that no kernel runs on freed buffers."""
        from src.pathtracer.camera.camera import setup_camera
        from src.pathtracer.core.context import RenderContext
        from src.pathtracer.core.integrator import WavefrontIntegrator

        setup_camera(simple_camera)
        ctx = RenderContext(simple_camera.pixel_count)
        integrator = WavefrontIntegrator(ctx)
        ctx.release()

        with pytest.raises(RuntimeError, match="released"):
            integrator.generate_rays(0, 0, 8, 6, 4, True, False, 0)
        with pytest.raises(RuntimeError, match="released"):
            integrator.compute_intersections(0, 48)
        with pytest.raises(RuntimeError, match="released"):
            integrator.shade(0, 48, 0, 0, False, 0)
