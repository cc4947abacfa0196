"""Image export utilities for rendered images.

The renderer hands out the mean radiance image (sum / iterations). Export
clamps it to 8 bits per channel:

    byte = clamp(value * 255, 0, 255)

with an optional gamma applied first. Files are written with Pillow; the
format follows the file extension.

Example:
    >>> from src.pathtracer.preview.export import save_png
    >>> save_png(renderer, "cornell.png")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage

if TYPE_CHECKING:
    from src.pathtracer.core.progressive import ProgressiveRenderer


def tone_map_clamp(image: npt.NDArray[np.floating]) -> npt.NDArray[np.uint8]:
    """Scale a mean image to bytes, saturating at 0 and 255.

    Args:
        image: Mean radiance array of any shape.

    Returns:
        uint8 array of the same shape.
    """
    scaled = np.asarray(image, dtype=np.float64) * 255.0
    return np.clip(scaled, 0.0, 255.0).astype(np.uint8)


def image_to_uint8(
    image: npt.NDArray[np.float32],
    *,
    gamma: float = 1.0,
) -> npt.NDArray[np.uint8]:
    """Convert a mean float image to uint8 for display/export.

    Args:
        image: Mean radiance array of shape (H, W, 3).
        gamma: Gamma correction value (1.0 = linear).

    Returns:
        8-bit image array of shape (H, W, 3).

    Raises:
        ValueError: If gamma is not positive.
    """
    if gamma <= 0.0:
        raise ValueError(f"Gamma must be positive, got {gamma}")
    values = np.asarray(image, dtype=np.float64)
    if gamma != 1.0:
        values = np.power(np.clip(values, 0.0, None), 1.0 / gamma)
    return tone_map_clamp(values)


def save_png_from_array(
    image: npt.NDArray[np.float32],
    filepath: str,
    *,
    gamma: float = 1.0,
) -> None:
    """Save a mean float image of shape (H, W, 3) to a file."""
    image_uint8 = image_to_uint8(image, gamma=gamma)
    pil_image = PILImage.fromarray(image_uint8, mode="RGB")
    pil_image.save(filepath)


def save_png(
    renderer: ProgressiveRenderer,
    filepath: str,
    *,
    gamma: float = 1.0,
) -> None:
    """Save a renderer's current mean image as a PNG file.

    Args:
        renderer: The ProgressiveRenderer to save.
        filepath: Output file path (should end in .png).
        gamma: Gamma correction value (1.0 = linear).
    """
    save_png_from_array(renderer.get_image_numpy(), filepath, gamma=gamma)


def compute_rmse(
    image_a: npt.NDArray[np.floating],
    image_b: npt.NDArray[np.floating],
) -> float:
    """Compute root mean squared error between two images.

    Raises:
        ValueError: If image shapes don't match.
    """
    if image_a.shape != image_b.shape:
        raise ValueError(f"Image shapes must match: {image_a.shape} vs {image_b.shape}")

    diff = image_a.astype(np.float64) - image_b.astype(np.float64)
    return float(np.sqrt(np.mean(diff**2)))
