"""Vector utilities and sampling warps for GPU-accelerated path tracing.

This module provides reflection, refraction, tangent frames and the
sampling warps used by the camera and the materials. All operations are
designed to work within Taichi kernels.

Unlike a typical ``ti.random()`` based renderer, every sampling warp here takes
its uniform numbers as explicit arguments. The numbers come from the per-path
generator in ``src.pathtracer.core.rng``, which keeps each path's random stream
independent of its position in the (sorted, compacted) path pool.

Example:
    >>> # Within a Taichi kernel:
    >>> # mirrored = reflect(direction, normal)
    >>> # bounced = sample_cosine_hemisphere(normal, u1, u2)
"""

import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

# Threshold used to pick a helper axis when building a tangent frame
SQRT_OF_ONE_THIRD = 0.5773502691896257


# =============================================================================
# Vector Utility Functions
# =============================================================================


@ti.func
def reflect(incident: vec3, normal: vec3) -> vec3:
    """Reflect an incident vector about a normal.

    Args:
        incident: The incoming direction vector (pointing toward the surface).
        normal: The surface normal (should be normalized).

    Returns:
        The reflected direction vector.
    """
    return incident - 2.0 * tm.dot(incident, normal) * normal


@ti.func
def refract(incident: vec3, normal: vec3, eta: ti.f32) -> vec3:
    """Refract an incident vector through a surface.

    Computes the refracted direction using Snell's law. If total internal
    reflection occurs, returns a zero vector.

    Args:
        incident: The incoming direction vector (should be normalized).
        normal: The surface normal, facing against the incident direction.
        eta: The ratio of refractive indices (n_incident / n_transmitted).

    Returns:
        The refracted direction vector, or zero vector if total internal
        reflection occurs.
    """
    cos_i = -tm.dot(incident, normal)
    sin2_t = eta * eta * (1.0 - cos_i * cos_i)
    result = vec3(0.0, 0.0, 0.0)
    if sin2_t <= 1.0:
        cos_t = ti.sqrt(1.0 - sin2_t)
        result = eta * incident + (eta * cos_i - cos_t) * normal
    return result


@ti.func
def schlick_fresnel(cosine: ti.f32, ref_idx: ti.f32) -> ti.f32:
    """Compute Fresnel reflectance using Schlick's approximation.

    Args:
        cosine: Cosine of the angle between incident direction and normal.
        ref_idx: Ratio of refractive indices.

    Returns:
        The approximate Fresnel reflectance coefficient.
    """
    r0 = ((1.0 - ref_idx) / (1.0 + ref_idx)) ** 2
    return r0 + (1.0 - r0) * ((1.0 - cosine) ** 5)


@ti.func
def near_zero(v: vec3) -> ti.i32:
    """Check if a vector is near zero in all components.

    Returns:
        1 if all components are near zero, 0 otherwise.
    """
    s = 1e-8
    return ti.abs(v.x) < s and ti.abs(v.y) < s and ti.abs(v.z) < s


# =============================================================================
# Sampling Warps for Monte Carlo
# =============================================================================


@ti.func
def build_onb_from_normal(normal: vec3):
    """Build an orthonormal basis from a normal vector.

    The helper axis is the first world axis along which the normal has a
    component smaller than sqrt(1/3), so it can never be parallel to the
    normal.

    Args:
        normal: The surface normal (should be normalized).

    Returns:
        A tuple (tangent, bitangent, normal) forming an orthonormal basis.
    """
    helper = vec3(0.0, 0.0, 1.0)
    if ti.abs(normal.x) < SQRT_OF_ONE_THIRD:
        helper = vec3(1.0, 0.0, 0.0)
    elif ti.abs(normal.y) < SQRT_OF_ONE_THIRD:
        helper = vec3(0.0, 1.0, 0.0)
    tangent = tm.normalize(tm.cross(normal, helper))
    bitangent = tm.normalize(tm.cross(normal, tangent))
    return tangent, bitangent, normal


@ti.func
def local_to_world(local_dir: vec3, tangent: vec3, bitangent: vec3, normal: vec3) -> vec3:
    """Transform a direction from a z-up local frame to world coordinates."""
    return local_dir.x * tangent + local_dir.y * bitangent + local_dir.z * normal


@ti.func
def sample_cosine_hemisphere(normal: vec3, u1: ti.f32, u2: ti.f32) -> vec3:
    """Cosine-weighted hemisphere sampling about a normal.

    The polar angle satisfies cos(theta) = sqrt(u1) and the azimuth is
    2 * pi * u2. The resulting density is cos(theta) / pi, which cancels the
    Lambertian BRDF and cosine term exactly.

    Args:
        normal: The surface normal defining the hemisphere orientation.
        u1: Uniform number in [0, 1) for the polar angle.
        u2: Uniform number in [0, 1) for the azimuth.

    Returns:
        The sampled unit direction in world space.
    """
    up = ti.sqrt(u1)
    over = ti.sqrt(ti.max(0.0, 1.0 - up * up))
    around = u2 * 2.0 * tm.pi
    tangent, bitangent, n = build_onb_from_normal(normal)
    local_dir = vec3(ti.cos(around) * over, ti.sin(around) * over, up)
    return tm.normalize(local_to_world(local_dir, tangent, bitangent, n))


@ti.func
def sample_phong_lobe(axis: vec3, exponent: ti.f32, u1: ti.f32, u2: ti.f32) -> vec3:
    """Sample a direction from a normalized Phong lobe around an axis.

    cos(theta) = u1 ** (1 / (exponent + 1)), so larger exponents concentrate
    samples around the axis.
    """
    cos_theta = u1 ** (1.0 / (exponent + 1.0))
    sin_theta = ti.sqrt(ti.max(0.0, 1.0 - cos_theta * cos_theta))
    phi = u2 * 2.0 * tm.pi
    tangent, bitangent, n = build_onb_from_normal(axis)
    local_dir = vec3(ti.cos(phi) * sin_theta, ti.sin(phi) * sin_theta, cos_theta)
    return tm.normalize(local_to_world(local_dir, tangent, bitangent, n))


@ti.func
def sample_concentric_disk(u1: ti.f32, u2: ti.f32) -> tm.vec2:
    """Map two uniforms to the unit disk with Shirley's concentric mapping.

    The mapping preserves relative areas and keeps adjacent samples adjacent,
    which is what the thin-lens camera wants for its aperture samples.

    Args:
        u1: Uniform number in [0, 1).
        u2: Uniform number in [0, 1).

    Returns:
        A point (x, y) with x^2 + y^2 <= 1.
    """
    ox = 2.0 * u1 - 1.0
    oy = 2.0 * u2 - 1.0
    result = tm.vec2(0.0, 0.0)
    if ox != 0.0 or oy != 0.0:
        r = 0.0
        theta = 0.0
        if ti.abs(ox) > ti.abs(oy):
            r = ox
            theta = (tm.pi / 4.0) * (oy / ox)
        else:
            r = oy
            theta = (tm.pi / 2.0) - (tm.pi / 4.0) * (ox / oy)
        result = r * tm.vec2(ti.cos(theta), ti.sin(theta))
    return result


@ti.func
def sample_uniform_sphere(u1: ti.f32, u2: ti.f32) -> vec3:
    """Map two uniforms to a uniformly distributed unit-sphere direction."""
    z = 1.0 - 2.0 * u1
    r = ti.sqrt(ti.max(0.0, 1.0 - z * z))
    phi = 2.0 * tm.pi * u2
    return vec3(r * ti.cos(phi), r * ti.sin(phi), z)
