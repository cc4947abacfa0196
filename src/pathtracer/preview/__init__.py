"""Preview module for image output.

Components:
    export: Clamp tone mapping and PNG export via Pillow

Example:
    >>> from src.pathtracer.preview import save_png
    >>> save_png(renderer, "output.png")
"""

from src.pathtracer.preview.export import (
    compute_rmse,
    image_to_uint8,
    save_png,
    save_png_from_array,
    tone_map_clamp,
)

__all__ = [
    "tone_map_clamp",
    "image_to_uint8",
    "save_png",
    "save_png_from_array",
    "compute_rmse",
]
