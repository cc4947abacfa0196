"""Unit tests for host-side model transforms."""

import numpy as np
import pytest

from src.pathtracer.geometry.transform import GeometryTransform, build_transform


class TestBuildTransform:
    """Tests for build_transform."""

    def test_identity(self):
        """Test that zero translation/rotation and unit scale is identity."""
        m = build_transform((0, 0, 0), (0, 0, 0), (1, 1, 1))
        np.testing.assert_allclose(m, np.identity(4), atol=1e-12)

    def test_translation_and_scale(self):
        """Test that scale applies before translation."""
        m = build_transform((1, 2, 3), (0, 0, 0), (2, 4, 6))
        p = m @ np.array([0.5, 0.5, 0.5, 1.0])
        np.testing.assert_allclose(p[:3], [2.0, 4.0, 6.0])

    def test_rotation_about_z(self):
        """Test that 90 degrees about z maps +x to +y."""
        m = build_transform((0, 0, 0), (0, 0, 90), (1, 1, 1))
        p = m @ np.array([1.0, 0.0, 0.0, 0.0])
        np.testing.assert_allclose(p[:3], [0.0, 1.0, 0.0], atol=1e-12)

    def test_rotation_order(self):
        """Test that z rotates first, then y, then x."""
        m = build_transform((0, 0, 0), (90, 90, 0), (1, 1, 1))
        # Ry(90): +z -> +x, then Rx(90) leaves +x alone
        p = m @ np.array([0.0, 0.0, 1.0, 0.0])
        np.testing.assert_allclose(p[:3], [1.0, 0.0, 0.0], atol=1e-12)

    def test_zero_scale_rejected(self):
        """Test that a singular scale raises ValueError."""
        with pytest.raises(ValueError, match="non-zero"):
            build_transform((0, 0, 0), (0, 0, 0), (1, 0, 1))


class TestGeometryTransform:
    """Tests for the GeometryTransform matrix set."""

    def test_inverse_and_inverse_transpose(self):
        """Test the derived matrices."""
        t = GeometryTransform.from_components((1, -2, 3), (10, 20, 30), (2, 3, 4))
        np.testing.assert_allclose(t.matrix @ t.inverse, np.identity(4), atol=1e-10)
        np.testing.assert_allclose(t.inverse_transpose, t.inverse.T, atol=1e-12)

    def test_transform_point(self):
        """Test the host-side point helper."""
        t = GeometryTransform.from_components((0, 10, 0), (0, 0, 0), (3, 0.3, 3))
        assert t.transform_point((0.0, -0.5, 0.0)) == pytest.approx((0.0, 9.85, 0.0))
