"""Scene-level geometry store and nearest-hit intersection testing.

Geometry instances (boxes and spheres) are stored in Taichi fields, one field
per property, indexed by geometry id. Each instance keeps its model matrix,
inverse and inverse transpose so the primitive tests can work in the local
frame.

Intersection is a linear scan over every instance: O(paths x geometry) per
bounce. There is deliberately no acceleration structure.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from src.pathtracer.scene.intersection import (
    ...     GeometryType, add_geometry, clear_scene, intersect_scene
    ... )
    >>> clear_scene()
    >>> # add_geometry(GeometryType.SPHERE, transform, material_id=0)
    >>> # Use intersect_scene within a Taichi kernel
"""

from enum import IntEnum

import taichi as ti
import taichi.math as tm

from src.pathtracer.geometry.box import box_intersection
from src.pathtracer.geometry.sphere import HitRecord, make_miss_record, sphere_intersection
from src.pathtracer.geometry.transform import GeometryTransform
from src.pathtracer.materials.material import material_emittance

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


class GeometryType(IntEnum):
    """Primitive kind of a geometry instance."""

    CUBE = 0
    SPHERE = 1


@ti.dataclass
class SceneHitRecord:
    """Record of a ray-scene intersection with material information.

    Attributes:
        t: World-space distance to the nearest hit, or -1.0 on a miss.
        point: The world-space intersection point. Only valid if t > 0.
        normal: World-space unit normal, oriented against the ray.
        outside: 1 if the ray origin was outside the hit primitive.
        material_id: Material of the hit primitive, -1 on a miss.
        geometry_id: Id of the hit primitive, -1 on a miss.
    """

    t: ti.f32
    point: vec3
    normal: vec3
    outside: ti.i32
    material_id: ti.i32
    geometry_id: ti.i32


# Maximum number of geometry instances supported in the scene
MAX_GEOMETRY = 1024

# Geometry storage: Structure of Arrays layout for GPU efficiency
geometry_types = ti.field(dtype=ti.i32, shape=MAX_GEOMETRY)
geometry_material_ids = ti.field(dtype=ti.i32, shape=MAX_GEOMETRY)
geometry_transforms = ti.Matrix.field(4, 4, dtype=ti.f32, shape=MAX_GEOMETRY)
geometry_inverse_transforms = ti.Matrix.field(4, 4, dtype=ti.f32, shape=MAX_GEOMETRY)
geometry_inverse_transposes = ti.Matrix.field(4, 4, dtype=ti.f32, shape=MAX_GEOMETRY)
num_geometry = ti.field(dtype=ti.i32, shape=())


def clear_scene() -> None:
    """Clear all geometry from the scene.

    Resets the geometry count to zero. The actual field data is not cleared
    but will be overwritten when new geometry is added.
    """
    num_geometry[None] = 0


def update_geometry_transform(index: int, transform: GeometryTransform) -> None:
    """Overwrite the matrices of an existing geometry instance.

    Used by motion blur to move an instance between iterations.

    Raises:
        IndexError: If the index does not refer to an existing instance.
    """
    if index < 0 or index >= num_geometry[None]:
        raise IndexError(f"Geometry index {index} out of range")
    geometry_transforms[index] = transform.matrix.tolist()
    geometry_inverse_transforms[index] = transform.inverse.tolist()
    geometry_inverse_transposes[index] = transform.inverse_transpose.tolist()


def add_geometry(
    geometry_type: GeometryType,
    transform: GeometryTransform,
    material_id: int = 0,
) -> int:
    """Add a geometry instance to the scene.

    Args:
        geometry_type: The primitive kind.
        transform: Model matrix set placing the unit primitive in the world.
        material_id: The material id to associate with this instance.

    Returns:
        The index of the added instance.

    Raises:
        RuntimeError: If the maximum number of instances is exceeded.
    """
    idx = num_geometry[None]
    if idx >= MAX_GEOMETRY:
        raise RuntimeError(f"Maximum number of geometry instances ({MAX_GEOMETRY}) exceeded")
    geometry_types[idx] = int(geometry_type)
    geometry_material_ids[idx] = material_id
    num_geometry[None] = idx + 1
    update_geometry_transform(idx, transform)
    return idx


def get_geometry_count() -> int:
    """Get the number of geometry instances in the scene."""
    return int(num_geometry[None])


@ti.func
def intersect_geometry(index: ti.i32, ray_origin: vec3, ray_direction: vec3) -> HitRecord:
    """Test a ray against one geometry instance.

    Args:
        index: The geometry id.
        ray_origin: World-space ray origin.
        ray_direction: World-space unit ray direction.

    Returns:
        The primitive HitRecord (t = -1.0 on a miss).
    """
    record = make_miss_record()
    geometry_type = geometry_types[index]
    if geometry_type == int(GeometryType.CUBE):
        record = box_intersection(
            geometry_transforms[index],
            geometry_inverse_transforms[index],
            geometry_inverse_transposes[index],
            ray_origin,
            ray_direction,
        )
    elif geometry_type == int(GeometryType.SPHERE):
        record = sphere_intersection(
            geometry_transforms[index],
            geometry_inverse_transforms[index],
            geometry_inverse_transposes[index],
            ray_origin,
            ray_direction,
        )
    return record


@ti.func
def make_scene_miss_record() -> SceneHitRecord:
    """Create a SceneHitRecord indicating no intersection."""
    return SceneHitRecord(
        t=-1.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        outside=0,
        material_id=-1,
        geometry_id=-1,
    )


@ti.func
def intersect_scene(ray_origin: vec3, ray_direction: vec3) -> SceneHitRecord:
    """Find the nearest positive hit of a ray against all geometry.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The unit direction of the ray.

    Returns:
        A SceneHitRecord for the closest intersection, or a miss record with
        t = -1.0 if nothing was hit.
    """
    closest_t = 1e38
    result = make_scene_miss_record()

    for i in range(num_geometry[None]):
        record = intersect_geometry(i, ray_origin, ray_direction)
        if record.t > 0.0 and record.t < closest_t:
            closest_t = record.t
            result = SceneHitRecord(
                t=record.t,
                point=record.point,
                normal=record.normal,
                outside=record.outside,
                material_id=geometry_material_ids[i],
                geometry_id=i,
            )

    return result


@ti.func
def is_occluded(ray_origin: vec3, ray_direction: vec3, max_distance: ti.f32) -> ti.i32:
    """Test whether a shadow ray is blocked before max_distance.

    Emissive surfaces never occlude: the shadow ray is allowed to reach the
    light through its own surface (or another light's).

    Args:
        ray_origin: The starting point of the shadow ray.
        ray_direction: The unit direction toward the light sample.
        max_distance: Distance to the light sample.

    Returns:
        1 if a non-emissive surface is hit closer than max_distance, else 0.
    """
    occluded = 0
    for i in range(num_geometry[None]):
        if occluded == 0 and material_emittance[geometry_material_ids[i]] <= 0.0:
            record = intersect_geometry(i, ray_origin, ray_direction)
            if record.t > 0.0 and record.t < max_distance:
                occluded = 1
    return occluded
