"""Sphere primitive with ray-sphere intersection in the local frame.

A sphere instance is a sphere of radius 0.5 centred at the local origin,
placed in the world by its model matrix. The world ray is carried into the
local frame with the inverse matrix, the quadratic for the local sphere is
solved in closed form, and the hit is mapped back to world space. Non-uniform
scale therefore produces ellipsoids, and the normal is mapped with the inverse
transpose.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from src.pathtracer.geometry.sphere import HitRecord, sphere_intersection
    >>> # Use sphere_intersection within a Taichi kernel
"""

import taichi as ti
import taichi.math as tm

from src.pathtracer.core.ray import sample_uniform_sphere

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3
vec4 = tm.vec4
mat4 = tm.mat4

# Radius of the local unit-diameter sphere
SPHERE_RADIUS = 0.5


@ti.dataclass
class HitRecord:
    """Record of a ray-primitive intersection.

    Attributes:
        t: World-space distance along the (unit) ray to the hit, or -1.0
            when the ray misses the primitive.
        point: The world-space intersection point. Only valid if t > 0.
        normal: The world-space unit normal, oriented against the ray.
            Only valid if t > 0.
        outside: 1 if the ray origin is outside the primitive, 0 if inside.
            Only valid if t > 0.
    """

    t: ti.f32
    point: vec3
    normal: vec3
    outside: ti.i32


@ti.func
def make_miss_record() -> HitRecord:
    """Create a HitRecord indicating no intersection."""
    return HitRecord(
        t=-1.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        outside=0,
    )


@ti.func
def sphere_intersection(
    transform: mat4,
    inverse: mat4,
    inverse_transpose: mat4,
    ray_origin: vec3,
    ray_direction: vec3,
) -> HitRecord:
    """Test a world-space ray against a transformed sphere.

    In the local frame the ray is q(t) = o + t * d with |d| = 1, and the
    sphere is |p| = 0.5. Substituting gives

        t^2 + 2 (o . d) t + (o . o - 0.25) = 0

    whose roots are t = -(o . d) +/- sqrt((o . d)^2 - (o . o - 0.25)).

    If both roots are positive the ray starts outside and the smaller one is
    the entry point. If only one is positive the ray starts inside and the
    larger one is the exit point; the normal is then flipped so that it faces
    against the ray.

    Args:
        transform: Model matrix of the instance.
        inverse: Inverse of the model matrix.
        inverse_transpose: Inverse transpose of the model matrix.
        ray_origin: World-space ray origin.
        ray_direction: World-space unit ray direction.

    Returns:
        A HitRecord; t is the world-space distance, or -1.0 on a miss.
    """
    local_origin = (inverse @ vec4(ray_origin, 1.0)).xyz
    local_direction = tm.normalize((inverse @ vec4(ray_direction, 0.0)).xyz)

    v_dot_d = tm.dot(local_origin, local_direction)
    radicand = v_dot_d * v_dot_d - (
        tm.dot(local_origin, local_origin) - SPHERE_RADIUS * SPHERE_RADIUS
    )

    result = make_miss_record()

    if radicand >= 0.0:
        square_root = ti.sqrt(radicand)
        t1 = -v_dot_d + square_root
        t2 = -v_dot_d - square_root

        if t1 > 0.0 or t2 > 0.0:
            t_local = 0.0
            outside = 1
            if t1 > 0.0 and t2 > 0.0:
                t_local = ti.min(t1, t2)
            else:
                t_local = ti.max(t1, t2)
                outside = 0

            local_point = local_origin + t_local * local_direction
            world_point = (transform @ vec4(local_point, 1.0)).xyz
            world_normal = tm.normalize((inverse_transpose @ vec4(local_point, 0.0)).xyz)
            if outside == 0:
                world_normal = -world_normal

            result = HitRecord(
                t=tm.length(ray_origin - world_point),
                point=world_point,
                normal=world_normal,
                outside=outside,
            )

    return result


@ti.func
def sample_sphere_surface(u1: ti.f32, u2: ti.f32) -> vec3:
    """Sample a uniformly distributed point on the local sphere surface.

    Args:
        u1: Uniform number in [0, 1).
        u2: Uniform number in [0, 1).

    Returns:
        A local-space point on the radius-0.5 sphere.
    """
    return SPHERE_RADIUS * sample_uniform_sphere(u1, u2)
