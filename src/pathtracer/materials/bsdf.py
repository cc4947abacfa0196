"""BSDF sampling for the material shader.

Each lobe here samples a continuation direction, returns the factor the path
throughput is multiplied by, and offsets the continuation origin off the
surface so the next bounce does not re-hit the same point.

Lobes:
    diffuse: cosine-weighted hemisphere; factor = albedo (BRDF * cos / pdf
        cancels exactly).
    specular: perfect mirror reflection, or a Phong lobe around the mirror
        direction when the specular exponent is > 0. A pure mirror passes
        throughput through unattenuated; in a mixture the lobe is tinted by
        the specular color.
    dielectric: Schlick-weighted choice between reflection (specular color)
        and refraction (base color); total internal reflection always
        reflects. Schlick is evaluated with the cosine on the less dense
        side, so rays leaving the medium use the transmitted cosine.

Materials that mix lobes pick one lobe with probability equal to its weight.
Because the selection probability equals the lobe weight, the two cancel and
the lobe's factor is applied as-is.

Example:
    >>> # Within a Taichi kernel:
    >>> # origin, direction, factor, rng = scatter_material(
    >>> #     material_id, incident, point, normal, outside, rng
    >>> # )
"""

import taichi as ti
import taichi.math as tm

from src.pathtracer.core.ray import (
    near_zero,
    reflect,
    refract,
    sample_cosine_hemisphere,
    sample_phong_lobe,
    schlick_fresnel,
)
from src.pathtracer.core.rng import next_uniform
from src.pathtracer.materials.material import (
    MaterialKind,
    material_colors,
    material_iors,
    material_kinds,
    material_reflective,
    material_refractive,
    material_specular_colors,
    material_specular_exponents,
)

# Type alias for 3D vectors
vec3 = tm.vec3

# Offset applied along the normal when spawning continuation rays
RAY_EPSILON = 1e-4


@ti.func
def spawn_origin(point: vec3, normal: vec3, direction: vec3) -> vec3:
    """Offset a continuation origin to the side of the surface it leaves on."""
    offset_dir = normal
    if tm.dot(direction, normal) < 0.0:
        offset_dir = -normal
    return point + RAY_EPSILON * offset_dir


@ti.func
def scatter_diffuse(point: vec3, normal: vec3, u1: ti.f32, u2: ti.f32):
    """Sample the Lambertian lobe.

    Args:
        point: World-space hit point.
        normal: Unit normal, oriented against the incoming ray.
        u1: Uniform number for the polar angle.
        u2: Uniform number for the azimuth.

    Returns:
        A tuple (origin, direction) of the continuation ray.
    """
    direction = sample_cosine_hemisphere(normal, u1, u2)
    if near_zero(direction):
        direction = normal
    return point + RAY_EPSILON * normal, direction


@ti.func
def scatter_specular(
    incident: vec3,
    point: vec3,
    normal: vec3,
    exponent: ti.f32,
    u1: ti.f32,
    u2: ti.f32,
):
    """Sample the specular reflection lobe.

    With exponent 0 this is a perfect mirror. Otherwise the direction is
    drawn from a Phong lobe around the mirror direction; samples that fall
    below the surface are replaced by the mirror direction.

    Returns:
        A tuple (origin, direction) of the continuation ray.
    """
    mirror = tm.normalize(reflect(incident, normal))
    direction = mirror
    if exponent > 0.0:
        direction = sample_phong_lobe(mirror, exponent, u1, u2)
        if tm.dot(direction, normal) <= 0.0:
            direction = mirror
    return point + RAY_EPSILON * normal, direction


@ti.func
def scatter_dielectric(
    incident: vec3,
    point: vec3,
    normal: vec3,
    outside: ti.i32,
    ior: ti.f32,
    u: ti.f32,
):
    """Sample a smooth dielectric boundary.

    The relative index is 1 / ior when entering the material (outside == 1)
    and ior when leaving it. The Schlick reflectance decides between
    reflection and refraction; when leaving, it is evaluated with the
    transmitted cosine.

    Returns:
        A tuple (origin, direction, reflected) where reflected is 1 when the
        reflection branch was taken and 0 for transmission.
    """
    eta = 1.0 / ior
    if outside == 0:
        eta = ior

    cos_theta = ti.min(-tm.dot(incident, normal), 1.0)
    cosine = cos_theta
    if eta > 1.0:
        sin2_t = eta * eta * (1.0 - cos_theta * cos_theta)
        cosine = tm.sqrt(ti.max(0.0, 1.0 - sin2_t))
    reflectance = schlick_fresnel(cosine, eta)
    refracted = refract(incident, normal, eta)

    direction = vec3(0.0, 0.0, 0.0)
    reflected = 0
    if near_zero(refracted) or u < reflectance:
        direction = tm.normalize(reflect(incident, normal))
        reflected = 1
    else:
        direction = tm.normalize(refracted)

    return spawn_origin(point, normal, direction), direction, reflected


@ti.func
def scatter_material(
    material_id: ti.i32,
    incident: vec3,
    point: vec3,
    normal: vec3,
    outside: ti.i32,
    rng: ti.u32,
):
    """Scatter a path off a non-emissive material.

    Dispatches on the stored MaterialKind. MIXED materials choose the
    specular lobe with probability `reflective`, the dielectric lobe with
    probability `refractive` and the diffuse lobe with the remainder (weights
    above 1 in total are renormalized).

    Args:
        material_id: Id of the material at the hit point.
        incident: Unit direction of the incoming ray.
        point: World-space hit point.
        normal: Unit normal, oriented against the incoming ray.
        outside: 1 if the incoming ray started outside the primitive.
        rng: Generator state for this path and bounce.

    Returns:
        A tuple (origin, direction, factor, rng) where factor multiplies the
        path throughput and rng is the advanced generator state.
    """
    kind = material_kinds[material_id]
    color = material_colors[material_id]
    specular_color = material_specular_colors[material_id]
    exponent = material_specular_exponents[material_id]

    state = rng
    u_lobe, state = next_uniform(state)
    u1, state = next_uniform(state)
    u2, state = next_uniform(state)

    origin = point
    direction = normal
    factor = vec3(0.0, 0.0, 0.0)

    if kind == int(MaterialKind.DIFFUSE):
        origin, direction = scatter_diffuse(point, normal, u1, u2)
        factor = color
    elif kind == int(MaterialKind.MIRROR):
        origin, direction = scatter_specular(incident, point, normal, exponent, u1, u2)
        factor = vec3(1.0, 1.0, 1.0)
    else:
        reflective = material_reflective[material_id]
        refractive = material_refractive[material_id]
        total = ti.max(1.0, reflective + refractive)
        p_reflect = reflective / total
        p_refract = refractive / total

        if u_lobe < p_reflect:
            origin, direction = scatter_specular(incident, point, normal, exponent, u1, u2)
            factor = specular_color
        elif u_lobe < p_reflect + p_refract:
            origin, direction, reflected = scatter_dielectric(
                incident, point, normal, outside, material_iors[material_id], u1
            )
            factor = color
            if reflected == 1:
                factor = specular_color
        else:
            origin, direction = scatter_diffuse(point, normal, u1, u2)
            factor = color

    return origin, direction, factor, state
