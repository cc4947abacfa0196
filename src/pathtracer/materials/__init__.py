"""Materials module for the material store and BSDF sampling.

Components:
    material: Material properties in Taichi fields, MaterialKind classification
    bsdf: Diffuse, specular (mirror / Phong) and Fresnel dielectric lobes

Materials follow the scene file's MATERIAL block. Emissive materials end a
path; all others scatter it with a lobe chosen from the material's weights.
All BSDF computations are Taichi functions for GPU execution.
"""

from .bsdf import (
    RAY_EPSILON,
    scatter_dielectric,
    scatter_diffuse,
    scatter_material,
    scatter_specular,
    spawn_origin,
)
from .material import (
    MAX_MATERIALS,
    MaterialKind,
    add_material,
    classify_material,
    clear_materials,
    get_material_count,
    get_material_kind_python,
)

__all__ = [
    # Store
    "MAX_MATERIALS",
    "MaterialKind",
    "add_material",
    "classify_material",
    "clear_materials",
    "get_material_count",
    "get_material_kind_python",
    # BSDF
    "RAY_EPSILON",
    "spawn_origin",
    "scatter_diffuse",
    "scatter_specular",
    "scatter_dielectric",
    "scatter_material",
]
