"""Unit tests for materials and BSDF sampling.

Tests cover:
- Material store validation and kind classification
- Diffuse scattering (direction in the hemisphere, factor = albedo)
- Perfect and glossy mirror reflection
- Dielectric reflection/refraction and total internal reflection
- Mixed lobe selection
"""

import math

import numpy as np
import pytest
import taichi as ti


def _scatter(material_id, incident, normal, outside=1, seed=0, count=1):
    """Scatter `count` independent samples and return (origins, dirs, factors)."""
    from src.pathtracer.core.rng import make_rng
    from src.pathtracer.materials.bsdf import scatter_material

    origins = ti.Vector.field(3, dtype=ti.f32, shape=count)
    directions = ti.Vector.field(3, dtype=ti.f32, shape=count)
    factors = ti.Vector.field(3, dtype=ti.f32, shape=count)
    ray = ti.Vector.field(3, dtype=ti.f32, shape=2)
    ray[0] = incident
    ray[1] = normal

    @ti.kernel
    def test_kernel():
        for i in range(count):
            rng = make_rng(seed, 0, i, 0)
            origin, direction, factor, _ = scatter_material(
                material_id, ray[0], ti.math.vec3(0.0, 0.0, 0.0), ray[1], outside, rng
            )
            origins[i] = origin
            directions[i] = direction
            factors[i] = factor

    test_kernel()
    return origins.to_numpy(), directions.to_numpy(), factors.to_numpy()


class TestMaterialStore:
    """Tests for add_material and classify_material."""

    def test_classify(self):
        """Test the kind derived from the weights and emittance."""
        from src.pathtracer.materials.material import MaterialKind, classify_material

        assert classify_material(0.0, 0.0, 0.0) == MaterialKind.DIFFUSE
        assert classify_material(1.0, 0.0, 0.0) == MaterialKind.MIRROR
        assert classify_material(0.0, 1.0, 0.0) == MaterialKind.MIXED
        assert classify_material(0.5, 0.0, 0.0) == MaterialKind.MIXED
        assert classify_material(1.0, 0.0, 2.0) == MaterialKind.EMISSIVE

    def test_add_material_records_kind(self):
        """Test that the stored kind matches the classification."""
        from src.pathtracer.materials.material import (
            MaterialKind,
            add_material,
            get_material_count,
            get_material_kind_python,
        )

        white = add_material(color=(0.98, 0.98, 0.98))
        glass = add_material(color=(1.0, 1.0, 1.0), refractive=1.0, ior=1.5)
        light = add_material(color=(1.0, 1.0, 1.0), emittance=5.0)

        assert (white, glass, light) == (0, 1, 2)
        assert get_material_count() == 3
        assert get_material_kind_python(white) == MaterialKind.DIFFUSE
        assert get_material_kind_python(glass) == MaterialKind.MIXED
        assert get_material_kind_python(light) == MaterialKind.EMISSIVE

    @pytest.mark.parametrize(
        "kwargs, message",
        [
            ({"color": (1.5, 0.0, 0.0)}, "Color component 0"),
            ({"color": (0.5, 0.5, 0.5), "specular_color": (0.0, -0.1, 0.0)}, "Specular color"),
            ({"color": (0.5, 0.5, 0.5), "reflective": 1.2}, "Reflective weight"),
            ({"color": (0.5, 0.5, 0.5), "refractive": -0.5}, "Refractive weight"),
            ({"color": (0.5, 0.5, 0.5), "emittance": -1.0}, "Emittance"),
            ({"color": (0.5, 0.5, 0.5), "specular_exponent": -2.0}, "Specular exponent"),
            ({"color": (0.5, 0.5, 0.5), "refractive": 1.0, "ior": 0.0}, "index of refraction"),
        ],
    )
    def test_add_material_validation(self, kwargs, message):
        """Test that out-of-range properties are rejected."""
        from src.pathtracer.materials.material import add_material, get_material_count

        with pytest.raises(ValueError, match=message):
            add_material(**kwargs)
        assert get_material_count() == 0


class TestDiffuse:
    """Tests for the diffuse lobe."""

    def test_direction_in_hemisphere_and_factor_is_albedo(self):
        """Test every sample leaves above the surface with factor = color."""
        from src.pathtracer.materials.material import add_material

        material = add_material(color=(0.8, 0.4, 0.2))
        origins, directions, factors = _scatter(
            material, (0.0, -1.0, 0.0), (0.0, 1.0, 0.0), count=256
        )

        assert np.all(directions[:, 1] >= 0.0)
        np.testing.assert_allclose(np.linalg.norm(directions, axis=1), 1.0, atol=1e-5)
        np.testing.assert_allclose(factors, np.tile([0.8, 0.4, 0.2], (256, 1)), atol=1e-6)
        # Origins are pushed off the surface along the normal
        assert np.all(origins[:, 1] > 0.0)


class TestMirror:
    """Tests for the specular lobe."""

    def test_perfect_mirror(self):
        """Test exact reflection with unattenuated throughput."""
        from src.pathtracer.materials.material import add_material

        material = add_material(
            color=(0.1, 0.1, 0.1), specular_color=(0.9, 0.8, 0.7), reflective=1.0
        )
        incident = (math.sqrt(0.5), -math.sqrt(0.5), 0.0)
        _, directions, factors = _scatter(material, incident, (0.0, 1.0, 0.0), count=8)

        for d in directions:
            np.testing.assert_allclose(d, [math.sqrt(0.5), math.sqrt(0.5), 0.0], atol=1e-5)
        # A pure mirror ignores the specular tint
        np.testing.assert_allclose(factors, np.ones((8, 3)), atol=1e-6)

    def test_mirror_with_default_specular_color(self):
        """Test that a mirror without a specular color still reflects light."""
        from src.pathtracer.materials.material import add_material

        material = add_material(color=(0.5, 0.5, 0.5), reflective=1.0)
        _, directions, factors = _scatter(material, (0.0, -1.0, 0.0), (0.0, 1.0, 0.0), count=4)

        np.testing.assert_allclose(directions, np.tile([0.0, 1.0, 0.0], (4, 1)), atol=1e-5)
        np.testing.assert_allclose(factors, np.ones((4, 3)), atol=1e-6)

    def test_glossy_mirror_stays_above_surface(self):
        """Test that a Phong lobe scatters around the mirror direction."""
        from src.pathtracer.materials.material import add_material

        material = add_material(
            color=(0.1, 0.1, 0.1),
            specular_color=(1.0, 1.0, 1.0),
            specular_exponent=50.0,
            reflective=1.0,
        )
        _, directions, _ = _scatter(material, (0.0, -1.0, 0.0), (0.0, 1.0, 0.0), count=128)

        assert np.all(directions[:, 1] > 0.0)
        assert directions[:, 1].mean() > 0.9
        # Not every sample is the exact mirror direction
        assert np.any(np.abs(directions[:, 0]) > 1e-3)


class TestDielectric:
    """Tests for the refractive lobe."""

    def test_head_on_mostly_transmits(self):
        """Test that at normal incidence about 4% of samples reflect."""
        from src.pathtracer.materials.material import add_material

        material = add_material(
            color=(0.9, 0.9, 0.9), specular_color=(1.0, 1.0, 1.0), refractive=1.0, ior=1.5
        )
        origins, directions, factors = _scatter(
            material, (0.0, -1.0, 0.0), (0.0, 1.0, 0.0), count=2000
        )

        transmitted = directions[:, 1] < 0.0
        reflected = ~transmitted
        np.testing.assert_allclose(directions[transmitted], [[0.0, -1.0, 0.0]] * transmitted.sum(), atol=1e-5)
        assert 0.01 < reflected.mean() < 0.08
        # Transmission carries the base color, reflection the specular color
        np.testing.assert_allclose(factors[transmitted][0], [0.9, 0.9, 0.9], atol=1e-6)
        if reflected.any():
            np.testing.assert_allclose(factors[reflected][0], [1.0, 1.0, 1.0], atol=1e-6)
        # Transmitted origins are offset to the far side of the surface
        assert np.all(origins[transmitted][:, 1] < 0.0)

    def test_total_internal_reflection(self):
        """Test that a grazing ray leaving the medium always reflects."""
        from src.pathtracer.materials.material import add_material

        material = add_material(
            color=(0.9, 0.9, 0.9), specular_color=(1.0, 1.0, 1.0), refractive=1.0, ior=1.5
        )
        incident = np.array([1.0, -0.2, 0.0])
        incident /= np.linalg.norm(incident)
        _, directions, _ = _scatter(
            material, tuple(incident), (0.0, 1.0, 0.0), outside=0, count=64
        )

        assert np.all(directions[:, 1] > 0.0)
        np.testing.assert_allclose(directions[:, 0], incident[0], atol=1e-5)

    def test_leaving_medium_uses_transmitted_cosine(self):
        """Test Schlick reflectance for a ray exiting glass.

        At cos(theta_i) = 0.8 inside glass of index 1.5 the transmitted
        cosine is about 0.436. Schlick gives 0.0948 with it, against 0.0403
        with the incident cosine, so u = 0.07 must pick reflection.
        """
        from src.pathtracer.materials.bsdf import scatter_dielectric

        reflected = ti.field(dtype=ti.i32, shape=2)

        @ti.kernel
        def test_kernel():
            incident = ti.math.vec3(0.6, -0.8, 0.0)
            normal = ti.math.vec3(0.0, 1.0, 0.0)
            point = ti.math.vec3(0.0, 0.0, 0.0)
            _, _, leaving = scatter_dielectric(incident, point, normal, 0, 1.5, 0.07)
            _, _, entering = scatter_dielectric(incident, point, normal, 1, 1.5, 0.07)
            reflected[0] = leaving
            reflected[1] = entering

        test_kernel()
        assert reflected[0] == 1
        # Entering glass at the same angle: reflectance is about 0.0403
        assert reflected[1] == 0


class TestMixed:
    """Tests for probabilistic lobe selection."""

    def test_half_reflective_splits_samples(self):
        """Test that reflective = 0.5 picks the mirror lobe about half the time."""
        from src.pathtracer.materials.material import add_material

        material = add_material(
            color=(0.2, 0.2, 0.2), specular_color=(1.0, 1.0, 1.0), reflective=0.5
        )
        _, _, factors = _scatter(material, (0.0, -1.0, 0.0), (0.0, 1.0, 0.0), count=2000)

        mirror_fraction = np.mean(factors[:, 0] > 0.5)
        assert abs(mirror_fraction - 0.5) < 0.05
