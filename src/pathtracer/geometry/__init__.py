"""Geometry module for shape primitives.

This module provides the two primitive kinds of the scene and their
transforms:

Components:
    transform: Host-side model matrices (NumPy) for placing unit primitives
    box: Unit cube [-0.5, 0.5]^3 with slab intersection and surface sampling
    sphere: Unit-diameter sphere with closed-form intersection and sampling

All intersection routines are Taichi functions (@ti.func) working on one ray
at a time; the scene module calls them from data-parallel kernels. There is
no acceleration structure: the scene is scanned linearly.

Ray-object intersection follows the pattern:
    record = primitive_intersection(matrix, inverse, inverse_transpose, origin, direction)
"""

from .box import box_intersection, sample_box_surface
from .sphere import HitRecord, make_miss_record, sample_sphere_surface, sphere_intersection
from .transform import GeometryTransform, build_transform, inverse_transpose, invert

__all__ = [
    "HitRecord",
    "make_miss_record",
    "box_intersection",
    "sample_box_surface",
    "sphere_intersection",
    "sample_sphere_surface",
    "GeometryTransform",
    "build_transform",
    "invert",
    "inverse_transpose",
]
