"""Box primitive with slab-method ray intersection in the local frame.

A box instance is the unit cube [-0.5, 0.5]^3 placed in the world by its
model matrix, so rotated and non-uniformly scaled boxes need no special
handling. The world ray is taken into the local frame with the inverse
matrix, clipped against the three slabs, and the hit is mapped back to world
space. Normals are carried back with the inverse transpose.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from src.pathtracer.geometry.box import box_intersection
    >>> # Use box_intersection within a Taichi kernel
"""

import taichi as ti
import taichi.math as tm

from src.pathtracer.geometry.sphere import HitRecord, make_miss_record

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3
vec4 = tm.vec4
mat4 = tm.mat4

# Half extent of the local unit cube
BOX_HALF_EXTENT = 0.5

# Direction components smaller than this are treated as parallel to a slab
PARALLEL_EPSILON = 1e-5

# Stand-in for +/- infinity in the slab interval
SLAB_INFINITY = 1e38


@ti.func
def box_intersection(
    transform: mat4,
    inverse: mat4,
    inverse_transpose: mat4,
    ray_origin: vec3,
    ray_direction: vec3,
) -> HitRecord:
    """Test a world-space ray against a transformed box.

    For each axis the ray is clipped against the slab [-0.5, 0.5]. The entry
    distance is the largest near-plane distance and the exit distance the
    smallest far-plane distance. A ray parallel to a slab misses unless its
    origin lies between the two planes.

    If the entry distance is positive the ray started outside and the entry
    face is reported. Otherwise the ray started inside and the exit face is
    reported, with its normal facing back toward the ray origin.

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

    t_near = -SLAB_INFINITY
    t_far = SLAB_INFINITY
    normal_near = vec3(0.0, 0.0, 0.0)
    normal_far = vec3(0.0, 0.0, 0.0)
    parallel_miss = 0

    for axis in ti.static(range(3)):
        d = local_direction[axis]
        o = local_origin[axis]
        if ti.abs(d) > PARALLEL_EPSILON:
            t1 = (-BOX_HALF_EXTENT - o) / d
            t2 = (BOX_HALF_EXTENT - o) / d
            ta = ti.min(t1, t2)
            tb = ti.max(t1, t2)
            # Outward normal of the entry face; it faces against the ray on
            # the exit face as well
            face_normal = vec3(0.0, 0.0, 0.0)
            face_normal[axis] = ti.select(t2 < t1, 1.0, -1.0)
            if ta > t_near:
                t_near = ta
                normal_near = face_normal
            if tb < t_far:
                t_far = tb
                normal_far = face_normal
        elif o < -BOX_HALF_EXTENT or o > BOX_HALF_EXTENT:
            parallel_miss = 1

    result = make_miss_record()

    if parallel_miss == 0 and t_far >= t_near and t_far > 0.0:
        outside = 1
        t_local = t_near
        local_normal = normal_near
        if t_near <= 0.0:
            outside = 0
            t_local = t_far
            local_normal = normal_far

        local_point = local_origin + t_local * local_direction
        world_point = (transform @ vec4(local_point, 1.0)).xyz
        world_normal = tm.normalize((inverse_transpose @ vec4(local_normal, 0.0)).xyz)

        result = HitRecord(
            t=tm.length(ray_origin - world_point),
            point=world_point,
            normal=world_normal,
            outside=outside,
        )

    return result


@ti.func
def sample_box_surface(u1: ti.f32, u2: ti.f32, u3: ti.f32) -> vec3:
    """Sample a point on the local box surface.

    One of the six faces is chosen uniformly with u1, then a uniform point
    on that face is chosen with u2 and u3. Faces are not weighted by area.

    Returns:
        A local-space point on the surface of [-0.5, 0.5]^3.
    """
    face = ti.min(ti.cast(u1 * 6.0, ti.i32), 5)
    axis = face // 2
    side = ti.select(face % 2 == 0, -BOX_HALF_EXTENT, BOX_HALF_EXTENT)
    a = u2 - 0.5
    b = u3 - 0.5

    point = vec3(a, b, side)
    if axis == 0:
        point = vec3(side, a, b)
    elif axis == 1:
        point = vec3(a, side, b)
    return point
