"""Camera module for view setup and primary ray generation.

Components:
    camera: Camera settings, derived basis and the thin-lens ray generator

Ray generation works in pixel coordinates: the primary ray of pixel (x, y)
passes through the point (x + jx, y + jy) of the image plane, with the image
centre on the view axis.
"""

from .camera import (
    Camera,
    CameraBasis,
    generate_camera_ray,
    get_camera_info,
    setup_camera,
)

__all__ = [
    "Camera",
    "CameraBasis",
    "setup_camera",
    "generate_camera_ray",
    "get_camera_info",
]
