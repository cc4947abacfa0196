"""Light list and single-sample direct lighting.

Every geometry instance with an emissive material is a light. The light list
stores the geometry id and material id of each one so that direct lighting
can pick a light without scanning the scene.

The direct-light estimate used for paths that run out of bounces is a simple
one-sample estimator: pick one light uniformly, pick a point on its surface,
and return color * emittance * |cos(theta)| if the point is visible. It is not
divided by a pdf, so it brightens paths rather than estimating radiance
exactly.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from src.pathtracer.scene.lights import add_light, clear_lights
    >>> clear_lights()
    >>> # add_light(geometry_id, material_id)
"""

import taichi as ti
import taichi.math as tm

from src.pathtracer.core.rng import next_uniform
from src.pathtracer.geometry.box import sample_box_surface
from src.pathtracer.geometry.sphere import sample_sphere_surface
from src.pathtracer.materials.bsdf import RAY_EPSILON
from src.pathtracer.materials.material import material_colors, material_emittance
from src.pathtracer.scene.intersection import (
    GeometryType,
    geometry_transforms,
    geometry_types,
    is_occluded,
)

vec3 = tm.vec3
vec4 = tm.vec4

# Maximum number of lights
MAX_LIGHTS = 64

light_geometry_ids = ti.field(dtype=ti.i32, shape=MAX_LIGHTS)
light_material_ids = ti.field(dtype=ti.i32, shape=MAX_LIGHTS)
num_lights = ti.field(dtype=ti.i32, shape=())


def clear_lights() -> None:
    """Remove all lights."""
    num_lights[None] = 0


def add_light(geometry_id: int, material_id: int) -> int:
    """Register an emissive geometry instance as a light.

    Returns:
        The index of the light.

    Raises:
        RuntimeError: If the maximum number of lights is exceeded.
    """
    idx = num_lights[None]
    if idx >= MAX_LIGHTS:
        raise RuntimeError(f"Maximum number of lights ({MAX_LIGHTS}) exceeded")
    light_geometry_ids[idx] = geometry_id
    light_material_ids[idx] = material_id
    num_lights[None] = idx + 1
    return idx


def get_light_count() -> int:
    """Get the number of registered lights."""
    return int(num_lights[None])


@ti.func
def sample_light_point(light: ti.i32, u1: ti.f32, u2: ti.f32, u3: ti.f32) -> vec3:
    """Pick a world-space point on the surface of a light.

    Args:
        light: Index into the light list.
        u1: Uniform number (face choice for boxes).
        u2: Uniform number.
        u3: Uniform number.

    Returns:
        A point on the light's surface in world space.
    """
    geometry_id = light_geometry_ids[light]
    local_point = vec3(0.0, 0.0, 0.0)
    if geometry_types[geometry_id] == int(GeometryType.SPHERE):
        local_point = sample_sphere_surface(u2, u3)
    else:
        local_point = sample_box_surface(u1, u2, u3)
    return (geometry_transforms[geometry_id] @ vec4(local_point, 1.0)).xyz


@ti.func
def direct_light_from_point(
    point: vec3,
    normal: vec3,
    light_point: vec3,
    material_id: ti.i32,
) -> vec3:
    """Unshadowed-or-zero contribution of one light sample.

    Args:
        point: Shading point.
        normal: Unit normal at the shading point, facing the incoming ray.
        light_point: Sampled point on the light.
        material_id: Material of the light.

    Returns:
        color * emittance * |cos(theta)|, or zero if the light point is hidden
        by a non-emissive surface. Lights on either side of the surface count.
    """
    side = 1.0
    if tm.dot(normal, light_point - point) < 0.0:
        side = -1.0
    origin = point + RAY_EPSILON * side * normal
    to_light = light_point - origin
    distance = tm.length(to_light)
    result = vec3(0.0, 0.0, 0.0)

    if distance > RAY_EPSILON:
        direction = to_light / distance
        cos_theta = ti.abs(tm.dot(normal, direction))
        if is_occluded(origin, direction, distance - RAY_EPSILON) == 0:
            result = material_colors[material_id] * material_emittance[material_id] * cos_theta

    return result


@ti.func
def estimate_direct_lighting(point: vec3, normal: vec3, rng: ti.u32) -> vec3:
    """One-sample direct lighting estimate at a surface point.

    Args:
        point: Shading point.
        normal: Unit normal at the shading point, facing the incoming ray.
        rng: Generator state for this path.

    Returns:
        The light contribution, or zero when there are no lights.
    """
    result = vec3(0.0, 0.0, 0.0)
    count = num_lights[None]
    if count > 0:
        state = rng
        u_light, state = next_uniform(state)
        u1, state = next_uniform(state)
        u2, state = next_uniform(state)
        u3, state = next_uniform(state)
        light = ti.min(ti.cast(u_light * ti.cast(count, ti.f32), ti.i32), count - 1)
        light_point = sample_light_point(light, u1, u2, u3)
        result = direct_light_from_point(point, normal, light_point, light_material_ids[light])
    return result
