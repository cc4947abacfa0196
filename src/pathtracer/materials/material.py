"""Material store and material-kind classification.

A material is described by the scene file's MATERIAL block: base color,
specular color and exponent, reflective and refractive weights, index of
refraction and emittance. The store keeps every property in its own Taichi
field, indexed by material id, so shading kernels read only what they need.

Shading branches are chosen from a small enumerated kind that is derived from
the data once, when the material is added:

    EMISSIVE  emittance > 0
    DIFFUSE   reflective ~ 0 and refractive ~ 0
    MIRROR    reflective = 1 and refractive = 0
    MIXED     any other combination (probabilistic lobe selection)

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from src.pathtracer.materials.material import add_material
    >>> white = add_material(color=(0.98, 0.98, 0.98))
    >>> light = add_material(color=(1.0, 1.0, 1.0), emittance=5.0)
"""

from enum import IntEnum

import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors
vec3 = tm.vec3

# Tolerance used when comparing weights against 0 and 1
FLOAT_EPSILON = 2e-6


class MaterialKind(IntEnum):
    """Shading branch of a material, derived from its properties."""

    DIFFUSE = 0
    MIRROR = 1
    MIXED = 2
    EMISSIVE = 3


def _fequal(a: float, b: float) -> bool:
    return abs(a - b) < FLOAT_EPSILON


def classify_material(
    reflective: float,
    refractive: float,
    emittance: float,
) -> MaterialKind:
    """Derive the shading branch for a set of material properties.

    Args:
        reflective: Reflective weight in [0, 1].
        refractive: Refractive weight in [0, 1].
        emittance: Emitted radiance scale (0 for non-emissive).

    Returns:
        The MaterialKind used for dispatch and sorting.
    """
    if emittance > 0.0:
        return MaterialKind.EMISSIVE
    if _fequal(reflective, 0.0) and _fequal(refractive, 0.0):
        return MaterialKind.DIFFUSE
    if _fequal(reflective, 1.0) and _fequal(refractive, 0.0):
        return MaterialKind.MIRROR
    return MaterialKind.MIXED


# =============================================================================
# Material Field Storage
# =============================================================================

# Maximum number of materials in the scene
MAX_MATERIALS = 256

material_colors = ti.Vector.field(3, dtype=ti.f32, shape=MAX_MATERIALS)
material_specular_colors = ti.Vector.field(3, dtype=ti.f32, shape=MAX_MATERIALS)
material_specular_exponents = ti.field(dtype=ti.f32, shape=MAX_MATERIALS)
material_reflective = ti.field(dtype=ti.f32, shape=MAX_MATERIALS)
material_refractive = ti.field(dtype=ti.f32, shape=MAX_MATERIALS)
material_iors = ti.field(dtype=ti.f32, shape=MAX_MATERIALS)
material_emittance = ti.field(dtype=ti.f32, shape=MAX_MATERIALS)
material_kinds = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
num_materials = ti.field(dtype=ti.i32, shape=())


def clear_materials() -> None:
    """Clear all materials.

    Resets the material count to zero. Existing data in the fields will be
    overwritten when new materials are added.
    """
    num_materials[None] = 0


def _check_unit_interval(name: str, value: float) -> None:
    if value < 0.0 or value > 1.0:
        raise ValueError(f"{name} = {value} is outside [0, 1]")


def add_material(
    color: tuple[float, float, float],
    specular_color: tuple[float, float, float] = (1.0, 1.0, 1.0),
    specular_exponent: float = 0.0,
    reflective: float = 0.0,
    refractive: float = 0.0,
    ior: float = 1.0,
    emittance: float = 0.0,
) -> int:
    """Add a material to the store.

    Args:
        color: Base (diffuse / transmission) color as (R, G, B).
        specular_color: Tint applied to specular reflections.
        specular_exponent: Phong exponent for glossy reflection; 0 gives a
            perfect mirror.
        reflective: Probability weight of the specular reflection lobe.
        refractive: Probability weight of the Fresnel dielectric lobe.
        ior: Index of refraction, used when refractive > 0.
        emittance: Emitted radiance scale; > 0 marks the material as a light.

    Returns:
        The id of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If a weight or color component is outside its range.
    """
    for i, component in enumerate(color):
        _check_unit_interval(f"Color component {i}", component)
    for i, component in enumerate(specular_color):
        _check_unit_interval(f"Specular color component {i}", component)
    _check_unit_interval("Reflective weight", reflective)
    _check_unit_interval("Refractive weight", refractive)
    if specular_exponent < 0.0:
        raise ValueError(f"Specular exponent must be non-negative, got {specular_exponent}")
    if emittance < 0.0:
        raise ValueError(f"Emittance must be non-negative, got {emittance}")
    if refractive > 0.0 and ior <= 0.0:
        raise ValueError(f"Refractive materials need a positive index of refraction, got {ior}")

    idx = num_materials[None]
    if idx >= MAX_MATERIALS:
        raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")

    kind = classify_material(reflective, refractive, emittance)

    material_colors[idx] = vec3(color[0], color[1], color[2])
    material_specular_colors[idx] = vec3(specular_color[0], specular_color[1], specular_color[2])
    material_specular_exponents[idx] = specular_exponent
    material_reflective[idx] = reflective
    material_refractive[idx] = refractive
    material_iors[idx] = ior
    material_emittance[idx] = emittance
    material_kinds[idx] = int(kind)
    num_materials[None] = idx + 1
    return idx


def get_material_count() -> int:
    """Get the number of materials in the store."""
    return int(num_materials[None])


def get_material_kind_python(material_id: int) -> MaterialKind:
    """Get the kind of a material from Python (for tests and tooling)."""
    return MaterialKind(int(material_kinds[material_id]))

