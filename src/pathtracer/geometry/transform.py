"""Model transforms for unit primitives.

Boxes and spheres are stored as unit primitives in their own local frame
(the box spans [-0.5, 0.5]^3, the sphere has radius 0.5 around the origin).
A geometry instance places the primitive in the world with a 4x4 model
matrix built from translation, Euler rotation (degrees) and scale:

    M = T * Rx * Ry * Rz * S

The intersection tester needs the matrix, its inverse (world ray to local
ray) and its inverse transpose (local normal to world normal). These are
computed once on the host with NumPy and uploaded to Taichi fields.
"""

import math
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

Vec3 = tuple[float, float, float]


def _rotation_x(degrees: float) -> npt.NDArray[np.float64]:
    a = math.radians(degrees)
    c, s = math.cos(a), math.sin(a)
    return np.array(
        [[1.0, 0.0, 0.0, 0.0], [0.0, c, -s, 0.0], [0.0, s, c, 0.0], [0.0, 0.0, 0.0, 1.0]]
    )


def _rotation_y(degrees: float) -> npt.NDArray[np.float64]:
    a = math.radians(degrees)
    c, s = math.cos(a), math.sin(a)
    return np.array(
        [[c, 0.0, s, 0.0], [0.0, 1.0, 0.0, 0.0], [-s, 0.0, c, 0.0], [0.0, 0.0, 0.0, 1.0]]
    )


def _rotation_z(degrees: float) -> npt.NDArray[np.float64]:
    a = math.radians(degrees)
    c, s = math.cos(a), math.sin(a)
    return np.array(
        [[c, -s, 0.0, 0.0], [s, c, 0.0, 0.0], [0.0, 0.0, 1.0, 0.0], [0.0, 0.0, 0.0, 1.0]]
    )


def build_transform(
    translation: Vec3,
    rotation: Vec3,
    scale: Vec3,
) -> npt.NDArray[np.float64]:
    """Build a model matrix from translation, rotation and scale.

    Args:
        translation: World-space translation (x, y, z).
        rotation: Euler angles in degrees, applied in z, y, x order to the
            scaled primitive.
        scale: Per-axis scale. A box with scale (2, 2, 2) spans [-1, 1]^3.

    Returns:
        The 4x4 model matrix.

    Raises:
        ValueError: If any scale component is zero (the matrix would not be
            invertible).
    """
    if any(abs(component) < 1e-12 for component in scale):
        raise ValueError(f"Scale components must be non-zero, got {scale}")

    translate = np.identity(4)
    translate[:3, 3] = translation
    scale_matrix = np.diag([scale[0], scale[1], scale[2], 1.0])
    return (
        translate
        @ _rotation_x(rotation[0])
        @ _rotation_y(rotation[1])
        @ _rotation_z(rotation[2])
        @ scale_matrix
    )


def invert(matrix: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """Return the inverse of a model matrix."""
    return np.linalg.inv(matrix)


def inverse_transpose(matrix: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """Return the inverse transpose of a model matrix (normal matrix)."""
    return np.linalg.inv(matrix).T


@dataclass
class GeometryTransform:
    """The three matrices the intersection tester needs for one instance."""

    matrix: npt.NDArray[np.float64]
    inverse: npt.NDArray[np.float64]
    inverse_transpose: npt.NDArray[np.float64]

    @classmethod
    def from_components(
        cls,
        translation: Vec3,
        rotation: Vec3,
        scale: Vec3,
    ) -> "GeometryTransform":
        """Build the matrix set from translation, rotation and scale."""
        matrix = build_transform(translation, rotation, scale)
        return cls(matrix=matrix, inverse=invert(matrix), inverse_transpose=inverse_transpose(matrix))

    def transform_point(self, point: Vec3) -> Vec3:
        """Map a local-space point to world space (host-side helper)."""
        p = self.matrix @ np.array([point[0], point[1], point[2], 1.0])
        return (float(p[0]), float(p[1]), float(p[2]))
