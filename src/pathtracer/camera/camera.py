"""Perspective camera with optional thin-lens depth of field.

The camera is described by the scene file's CAMERA block: resolution,
vertical field of view, eye position, look-at point and up vector, plus the
render settings that live there (iteration count, trace depth and output
file name). Two optional keys enable depth of field: lens radius and focal
distance.

From these the camera derives an orthonormal basis and the angular size of a
pixel:

    view         = normalize(look_at - eye)
    right        = normalize(view x up)
    up'          = right x view
    y_scaled     = tan(fovy)
    x_scaled     = y_scaled * width / height
    pixel_length = (2 * x_scaled / width, 2 * y_scaled / height)

FOVY is the angle between the view axis and the top edge of the image (a
half-angle). Pixel (x, y) = (0, 0) looks toward the top edge and toward
+right; columns are mirrored into viewer order when the image is read out.

The derived values are uploaded to Taichi fields so ray generation can run
inside kernels.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from src.pathtracer.camera.camera import Camera, setup_camera
    >>> camera = Camera(
    ...     resolution=(800, 800),
    ...     fovy=45.0,
    ...     eye=(0.0, 5.0, 10.5),
    ...     look_at=(0.0, 5.0, 0.0),
    ...     up=(0.0, 1.0, 0.0),
    ... )
    >>> setup_camera(camera)
"""

import math
from dataclasses import dataclass, field

import numpy as np
import taichi as ti
import taichi.math as tm

from src.pathtracer.core.ray import sample_concentric_disk

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

# =============================================================================
# Camera Data Structures
# =============================================================================


@dataclass
class CameraBasis:
    """Basis and pixel extents derived from a Camera."""

    view: tuple[float, float, float]
    right: tuple[float, float, float]
    up: tuple[float, float, float]
    pixel_length: tuple[float, float]
    fov: tuple[float, float]


@dataclass
class Camera:
    """Camera and per-render settings.

    Attributes:
        resolution: Image size as (width, height) in pixels.
        fovy: Angle in degrees from the view axis to the top image edge.
        eye: Camera position in world space.
        look_at: Point the camera looks at.
        up: Approximate up direction.
        lens_radius: Thin-lens aperture radius; 0 means a pinhole.
        focal_distance: Distance along the primary ray to the focus plane.
        iterations: Number of sampling iterations to render.
        depth: Maximum number of bounces per path.
        output_name: Base name for saved images.
    """

    resolution: tuple[int, int]
    fovy: float
    eye: tuple[float, float, float]
    look_at: tuple[float, float, float]
    up: tuple[float, float, float] = (0.0, 1.0, 0.0)
    lens_radius: float = 0.0
    focal_distance: float = 1.0
    iterations: int = 5000
    depth: int = 8
    output_name: str = "render"
    basis: CameraBasis | None = field(default=None, repr=False, compare=False)

    @property
    def width(self) -> int:
        return self.resolution[0]

    @property
    def height(self) -> int:
        return self.resolution[1]

    @property
    def pixel_count(self) -> int:
        return self.resolution[0] * self.resolution[1]

    def validate(self) -> None:
        """Check the camera settings.

        Raises:
            ValueError: If the resolution, depth, iteration count, field of
                view, lens or view vectors are unusable.
        """
        width, height = self.resolution
        if width <= 0 or height <= 0:
            raise ValueError(f"Resolution must be positive, got {self.resolution}")
        if self.depth < 0:
            raise ValueError(f"Depth must be non-negative, got {self.depth}")
        if self.iterations < 0:
            raise ValueError(f"Iterations must be non-negative, got {self.iterations}")
        if not 0.0 < self.fovy < 90.0:
            raise ValueError(f"fovy must be in (0, 90) degrees, got {self.fovy}")
        if self.lens_radius < 0.0:
            raise ValueError(f"Lens radius must be non-negative, got {self.lens_radius}")
        if self.focal_distance <= 0.0:
            raise ValueError(f"Focal distance must be positive, got {self.focal_distance}")

        view = np.array(self.look_at, dtype=np.float64) - np.array(self.eye, dtype=np.float64)
        if np.linalg.norm(view) < 1e-12:
            raise ValueError("Camera eye and look-at point coincide")
        if np.linalg.norm(np.cross(view, np.array(self.up, dtype=np.float64))) < 1e-12:
            raise ValueError("Camera up vector is parallel to the view direction")

    def derive_basis(self) -> CameraBasis:
        """Compute the view basis and pixel extents, caching the result."""
        self.validate()
        width, height = self.resolution

        eye = np.array(self.eye, dtype=np.float64)
        look_at = np.array(self.look_at, dtype=np.float64)
        up_hint = np.array(self.up, dtype=np.float64)

        view = look_at - eye
        view = view / np.linalg.norm(view)
        right = np.cross(view, up_hint)
        right = right / np.linalg.norm(right)
        up = np.cross(right, view)

        y_scaled = math.tan(math.radians(self.fovy))
        x_scaled = y_scaled * width / height
        fovx = math.degrees(math.atan(x_scaled))

        self.basis = CameraBasis(
            view=tuple(float(c) for c in view),
            right=tuple(float(c) for c in right),
            up=tuple(float(c) for c in up),
            pixel_length=(2.0 * x_scaled / width, 2.0 * y_scaled / height),
            fov=(fovx, self.fovy),
        )
        return self.basis


# =============================================================================
# Taichi Fields for Camera State (GPU-accessible)
# =============================================================================

_camera_eye = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_view = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_right = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_up = ti.Vector.field(3, dtype=ti.f32, shape=())
_pixel_length = ti.Vector.field(2, dtype=ti.f32, shape=())
_lens_radius = ti.field(dtype=ti.f32, shape=())
_focal_distance = ti.field(dtype=ti.f32, shape=())


def setup_camera(camera: Camera) -> None:
    """Upload the camera's derived state to Taichi fields.

    Must be called from Python (not from within a kernel) before rays are
    generated, and again whenever the camera changes.

    Raises:
        ValueError: If the camera settings are invalid.
    """
    basis = camera.derive_basis()
    _camera_eye[None] = list(camera.eye)
    _camera_view[None] = list(basis.view)
    _camera_right[None] = list(basis.right)
    _camera_up[None] = list(basis.up)
    _pixel_length[None] = list(basis.pixel_length)
    _lens_radius[None] = camera.lens_radius
    _focal_distance[None] = camera.focal_distance


@ti.func
def generate_camera_ray(
    x: ti.i32,
    y: ti.i32,
    width: ti.i32,
    height: ti.i32,
    jitter_x: ti.f32,
    jitter_y: ti.f32,
    lens_u: ti.f32,
    lens_v: ti.f32,
    use_dof: ti.i32,
):
    """Generate the primary ray for pixel (x, y).

    Args:
        x: Pixel column.
        y: Pixel row.
        width: Image width in pixels.
        height: Image height in pixels.
        jitter_x: Sub-pixel offset in [0, 1) (0 without antialiasing).
        jitter_y: Sub-pixel offset in [0, 1) (0 without antialiasing).
        lens_u: Uniform number for the lens sample.
        lens_v: Uniform number for the lens sample.
        use_dof: 1 to apply the thin lens when the lens radius is > 0.

    Returns:
        A tuple (origin, direction) with a unit direction.
    """
    view = _camera_view[None]
    right = _camera_right[None]
    up = _camera_up[None]
    pixel_length = _pixel_length[None]
    origin = _camera_eye[None]

    px = ti.cast(x, ti.f32) + jitter_x - ti.cast(width, ti.f32) * 0.5
    py = ti.cast(y, ti.f32) + jitter_y - ti.cast(height, ti.f32) * 0.5
    direction = tm.normalize(view - right * pixel_length[0] * px - up * pixel_length[1] * py)

    lens_radius = _lens_radius[None]
    if use_dof != 0 and lens_radius > 0.0:
        lens = sample_concentric_disk(lens_u, lens_v) * lens_radius
        focus = origin + direction * _focal_distance[None]
        origin = origin + right * lens[0] + up * lens[1]
        direction = tm.normalize(focus - origin)

    return origin, direction


# =============================================================================
# Utility Functions
# =============================================================================


def get_camera_info() -> dict[str, tuple[float, ...]]:
    """Read the uploaded camera state back for inspection.

    Returns:
        Dictionary with eye, view, right, up, pixel_length, lens_radius and
        focal_distance.
    """

    def as_tuple(value) -> tuple[float, ...]:
        return tuple(float(c) for c in value.to_numpy())

    return {
        "eye": as_tuple(_camera_eye[None]),
        "view": as_tuple(_camera_view[None]),
        "right": as_tuple(_camera_right[None]),
        "up": as_tuple(_camera_up[None]),
        "pixel_length": as_tuple(_pixel_length[None]),
        "lens_radius": (float(_lens_radius[None]),),
        "focal_distance": (float(_focal_distance[None]),),
    }
