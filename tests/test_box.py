"""Unit tests for the box primitive.

Tests cover:
- Hits from outside on scaled, translated and rotated boxes
- Rays starting inside the box (exit face, normal against the ray)
- Misses, including rays parallel to a slab
- Surface sampling
"""

import numpy as np
import taichi as ti

from src.pathtracer.geometry.transform import GeometryTransform


def _intersect(transform: GeometryTransform, origin, direction):
    """Run box_intersection for one ray and return (t, point, normal, outside)."""
    from src.pathtracer.geometry.box import box_intersection

    matrices = ti.Matrix.field(4, 4, dtype=ti.f32, shape=3)
    matrices[0] = transform.matrix.tolist()
    matrices[1] = transform.inverse.tolist()
    matrices[2] = transform.inverse_transpose.tolist()
    t = ti.field(dtype=ti.f32, shape=())
    point = ti.Vector.field(3, dtype=ti.f32, shape=())
    normal = ti.Vector.field(3, dtype=ti.f32, shape=())
    outside = ti.field(dtype=ti.i32, shape=())
    d = np.asarray(direction, dtype=np.float64)
    d = d / np.linalg.norm(d)
    ray = ti.Vector.field(3, dtype=ti.f32, shape=2)
    ray[0] = origin
    ray[1] = d.tolist()

    @ti.kernel
    def test_kernel():
        hit = box_intersection(matrices[0], matrices[1], matrices[2], ray[0], ray[1])
        t[None] = hit.t
        point[None] = hit.point
        normal[None] = hit.normal
        outside[None] = hit.outside

    test_kernel()
    return t[None], point[None].to_numpy(), normal[None].to_numpy(), outside[None]


class TestBoxIntersection:
    """Tests for box_intersection."""

    def test_hit_from_outside(self):
        """Test a head-on hit of a box spanning [-1, 1]^3."""
        transform = GeometryTransform.from_components((0, 0, 0), (0, 0, 0), (2, 2, 2))
        t, point, normal, outside = _intersect(transform, (0.0, 0.0, 5.0), (0.0, 0.0, -1.0))

        assert abs(t - 4.0) < 1e-4
        np.testing.assert_allclose(point, [0.0, 0.0, 1.0], atol=1e-4)
        np.testing.assert_allclose(normal, [0.0, 0.0, 1.0], atol=1e-5)
        assert outside == 1

    def test_hit_translated_side_face(self):
        """Test a hit on the -x face of a translated box."""
        transform = GeometryTransform.from_components((3, 0, 0), (0, 0, 0), (1, 1, 1))
        t, point, normal, outside = _intersect(transform, (0.0, 0.2, 0.1), (1.0, 0.0, 0.0))

        assert abs(t - 2.5) < 1e-4
        np.testing.assert_allclose(normal, [-1.0, 0.0, 0.0], atol=1e-5)
        assert outside == 1

    def test_ray_from_inside(self):
        """Test that a ray inside reports the exit face facing back at it."""
        transform = GeometryTransform.from_components((0, 0, 0), (0, 0, 0), (2, 2, 2))
        t, point, normal, outside = _intersect(transform, (0.0, 0.0, 0.0), (0.0, 0.0, -1.0))

        assert abs(t - 1.0) < 1e-4
        np.testing.assert_allclose(point, [0.0, 0.0, -1.0], atol=1e-4)
        np.testing.assert_allclose(normal, [0.0, 0.0, 1.0], atol=1e-5)
        assert outside == 0

    def test_miss(self):
        """Test a ray passing beside the box."""
        transform = GeometryTransform.from_components((0, 0, 0), (0, 0, 0), (1, 1, 1))
        t, _, _, _ = _intersect(transform, (2.0, 0.0, 5.0), (0.0, 0.0, -1.0))
        assert t < 0.0

    def test_parallel_ray_outside_slab_misses(self):
        """Test a ray parallel to the x slab but outside it."""
        transform = GeometryTransform.from_components((0, 0, 0), (0, 0, 0), (1, 1, 1))
        t, _, _, _ = _intersect(transform, (0.75, 0.0, 5.0), (0.0, 0.0, -1.0))
        assert t < 0.0

    def test_box_behind_ray_misses(self):
        """Test that a box behind the origin is not reported."""
        transform = GeometryTransform.from_components((0, 0, 0), (0, 0, 0), (1, 1, 1))
        t, _, _, _ = _intersect(transform, (0.0, 0.0, 5.0), (0.0, 0.0, 1.0))
        assert t < 0.0

    def test_rotated_box(self):
        """Test a box rotated 45 degrees about y, hit on the face turned toward +x."""
        transform = GeometryTransform.from_components((0, 0, 0), (0, 45, 0), (1, 1, 1))
        t, point, normal, outside = _intersect(transform, (0.1, 0.0, 5.0), (0.0, 0.0, -1.0))

        # The leading edge sits at z = sqrt(0.5) and the faces slope at 45 degrees
        assert abs(t - (5.0 - (np.sqrt(0.5) - 0.1))) < 1e-3
        np.testing.assert_allclose(normal, [np.sqrt(0.5), 0.0, np.sqrt(0.5)], atol=1e-4)
        assert outside == 1

    def test_non_uniform_scale_normal(self):
        """Test that a flattened box still has an axis-aligned unit normal on top."""
        transform = GeometryTransform.from_components((0, 10, 0), (0, 0, 0), (3, 0.3, 3))
        t, point, normal, outside = _intersect(transform, (0.5, 5.0, 0.5), (0.0, 1.0, 0.0))

        assert abs(t - 4.85) < 1e-4
        np.testing.assert_allclose(normal, [0.0, -1.0, 0.0], atol=1e-5)


class TestBoxSampling:
    """Tests for sample_box_surface."""

    def test_samples_lie_on_surface(self):
        """Test that every sample has one coordinate at +/-0.5."""
        from src.pathtracer.geometry.box import sample_box_surface

        count = 600
        points = ti.Vector.field(3, dtype=ti.f32, shape=count)

        @ti.kernel
        def test_kernel():
            for i in range(count):
                u1 = (ti.cast(i, ti.f32) + 0.5) / count
                u2 = ti.cast(i % 7, ti.f32) / 7.0
                u3 = ti.cast(i % 11, ti.f32) / 11.0
                points[i] = sample_box_surface(u1, u2, u3)

        test_kernel()
        values = points.to_numpy()
        assert np.all(np.abs(values) <= 0.5 + 1e-6)
        on_face = np.isclose(np.abs(values), 0.5, atol=1e-6).any(axis=1)
        assert on_face.all()
        # All six faces are visited
        faces = {(axis, np.sign(p[axis])) for p in values for axis in range(3) if abs(abs(p[axis]) - 0.5) < 1e-6}
        assert len(faces) == 6
