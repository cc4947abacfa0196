"""Core rendering module.

Components:
    ray: Reflection/refraction and sampling helpers
    rng: Counter-based per-path random numbers
    options: Runtime render options
    context: RenderContext owning the path pool, hit records and image
    integrator: Ray generation, intersection and shading kernels
    progressive: ProgressiveRenderer running the iteration loop

All per-path work runs in Taichi kernels, one lane per path.
"""

from .options import RenderOptions
from .ray import (
    build_onb_from_normal,
    local_to_world,
    near_zero,
    reflect,
    refract,
    sample_concentric_disk,
    sample_cosine_hemisphere,
    sample_phong_lobe,
    sample_uniform_sphere,
    schlick_fresnel,
    vec3,
)
from .rng import CAMERA_STREAM, make_rng, next_uniform, wang_hash

# Note: context, integrator and progressive are NOT imported here to avoid
# circular imports. Import them directly, e.g.:
#   from src.pathtracer.core.progressive import ProgressiveRenderer

__all__ = [
    "RenderOptions",
    "vec3",
    "reflect",
    "refract",
    "schlick_fresnel",
    "near_zero",
    "build_onb_from_normal",
    "local_to_world",
    "sample_cosine_hemisphere",
    "sample_phong_lobe",
    "sample_concentric_disk",
    "sample_uniform_sphere",
    "CAMERA_STREAM",
    "wang_hash",
    "make_rng",
    "next_uniform",
]
