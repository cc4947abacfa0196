"""Scene manager coordinating geometry, materials and lights.

The SceneManager is the Python-side owner of a scene. It keeps a record of
every material and geometry instance it has uploaded, registers emissive
instances as lights automatically, and recomputes transforms for geometry
that is "in motion" when motion blur is enabled.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from src.pathtracer.scene.manager import SceneManager
    >>> scene = SceneManager()
    >>> white = scene.add_material(color=(0.98, 0.98, 0.98))
    >>> light = scene.add_material(color=(1.0, 1.0, 1.0), emittance=5.0)
    >>> scene.add_cube(translation=(0, 10, 0), scale=(3, 0.3, 3), material_id=light)
    >>> scene.add_sphere(translation=(-1, 4, -1), scale=(3, 3, 3), material_id=white)
"""

from dataclasses import asdict, dataclass, field
from typing import Any

from src.pathtracer.geometry.transform import GeometryTransform, Vec3
from src.pathtracer.materials.material import (
    MAX_MATERIALS,
    MaterialKind,
    add_material,
    classify_material,
    clear_materials,
    get_material_count,
)
from src.pathtracer.scene.intersection import (
    MAX_GEOMETRY,
    GeometryType,
    add_geometry,
    clear_scene,
    get_geometry_count,
    update_geometry_transform,
)
from src.pathtracer.scene.lights import MAX_LIGHTS, add_light, clear_lights, get_light_count

# Total translation applied over a render to geometry in motion, unless the
# scene gives one explicitly
DEFAULT_DISPLACEMENT: Vec3 = (0.0, 1.0, 0.0)


@dataclass
class MaterialInfo:
    """Information about a registered material.

    Attributes:
        material_id: The material id.
        kind: The shading branch derived from the properties.
        params: The material properties as provided during creation.
    """

    material_id: int
    kind: MaterialKind
    params: dict[str, Any]

    @property
    def is_emissive(self) -> bool:
        return self.kind == MaterialKind.EMISSIVE


@dataclass
class GeometryInfo:
    """Information about a geometry instance in the scene.

    Attributes:
        geometry_id: The index in the geometry fields.
        geometry_type: Box or sphere.
        material_id: The material assigned to the instance.
        translation: Base translation (before any motion).
        rotation: Euler angles in degrees.
        scale: Per-axis scale.
        in_motion: Whether motion blur moves this instance.
        displacement: Total translation reached on the last motion step.
    """

    geometry_id: int
    geometry_type: GeometryType
    material_id: int
    translation: Vec3
    rotation: Vec3
    scale: Vec3
    in_motion: bool = False
    displacement: Vec3 = DEFAULT_DISPLACEMENT

    def transform_at(self, fraction: float) -> GeometryTransform:
        """Matrices of the instance moved by fraction * displacement."""
        translation = (
            self.translation[0] + self.displacement[0] * fraction,
            self.translation[1] + self.displacement[1] * fraction,
            self.translation[2] + self.displacement[2] * fraction,
        )
        return GeometryTransform.from_components(translation, self.rotation, self.scale)


@dataclass
class SceneConfig:
    """Configuration for scene serialization.

    Attributes:
        materials: List of material configurations.
        geometry: List of geometry configurations.
    """

    materials: list[dict[str, Any]] = field(default_factory=list)
    geometry: list[dict[str, Any]] = field(default_factory=list)


class SceneManager:
    """Owner of the scene's materials, geometry and lights.

    Attributes:
        materials: MaterialInfo for every registered material, by id.
        geometry: GeometryInfo for every instance, by id.
        lights: Geometry ids of emissive instances.
    """

    def __init__(self) -> None:
        """Initialize an empty scene."""
        self.materials: list[MaterialInfo] = []
        self.geometry: list[GeometryInfo] = []
        self.lights: list[int] = []
        self._clear_all()

    def _clear_all(self) -> None:
        clear_scene()
        clear_materials()
        clear_lights()
        self.materials.clear()
        self.geometry.clear()
        self.lights.clear()

    def clear(self) -> None:
        """Clear the entire scene (geometry, materials and lights)."""
        self._clear_all()

    # =========================================================================
    # Material Management
    # =========================================================================

    def add_material(
        self,
        color: Vec3,
        specular_color: Vec3 = (1.0, 1.0, 1.0),
        specular_exponent: float = 0.0,
        reflective: float = 0.0,
        refractive: float = 0.0,
        ior: float = 1.0,
        emittance: float = 0.0,
    ) -> int:
        """Add a material to the scene.

        See materials.material.add_material for the meaning of each property.

        Returns:
            The material id.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If a property is out of range.
        """
        material_id = add_material(
            color=color,
            specular_color=specular_color,
            specular_exponent=specular_exponent,
            reflective=reflective,
            refractive=refractive,
            ior=ior,
            emittance=emittance,
        )
        params = {
            "color": tuple(color),
            "specular_color": tuple(specular_color),
            "specular_exponent": specular_exponent,
            "reflective": reflective,
            "refractive": refractive,
            "ior": ior,
            "emittance": emittance,
        }
        kind = classify_material(reflective, refractive, emittance)
        self.materials.append(MaterialInfo(material_id=material_id, kind=kind, params=params))
        return material_id

    def get_material_count(self) -> int:
        """Get the total number of materials in the scene."""
        return get_material_count()

    def get_material_info(self, material_id: int) -> MaterialInfo | None:
        """Get information about a material by id, or None if not found."""
        if 0 <= material_id < len(self.materials):
            return self.materials[material_id]
        return None

    # =========================================================================
    # Geometry Management
    # =========================================================================

    def _add_geometry(
        self,
        geometry_type: GeometryType,
        translation: Vec3,
        rotation: Vec3,
        scale: Vec3,
        material_id: int,
        in_motion: bool,
        displacement: Vec3,
    ) -> int:
        if material_id < 0 or material_id >= len(self.materials):
            raise ValueError(f"Invalid material_id: {material_id}")
        emissive = self.materials[material_id].is_emissive
        # Check before uploading so a full light list leaves the scene unchanged
        if emissive and get_light_count() >= MAX_LIGHTS:
            raise RuntimeError(f"Maximum number of lights ({MAX_LIGHTS}) exceeded")

        info = GeometryInfo(
            geometry_id=-1,
            geometry_type=geometry_type,
            material_id=material_id,
            translation=tuple(translation),
            rotation=tuple(rotation),
            scale=tuple(scale),
            in_motion=in_motion,
            displacement=tuple(displacement),
        )
        geometry_id = add_geometry(geometry_type, info.transform_at(0.0), material_id)
        info.geometry_id = geometry_id
        self.geometry.append(info)

        if emissive:
            add_light(geometry_id, material_id)
            self.lights.append(geometry_id)
        return geometry_id

    def add_cube(
        self,
        translation: Vec3 = (0.0, 0.0, 0.0),
        rotation: Vec3 = (0.0, 0.0, 0.0),
        scale: Vec3 = (1.0, 1.0, 1.0),
        material_id: int = 0,
        in_motion: bool = False,
        displacement: Vec3 = DEFAULT_DISPLACEMENT,
    ) -> int:
        """Add a box (the unit cube placed by its transform).

        Args:
            translation: World-space position of the box centre.
            rotation: Euler angles in degrees.
            scale: Edge lengths along the local axes.
            material_id: Material of the box.
            in_motion: Whether motion blur moves the box.
            displacement: Total motion over the render.

        Returns:
            The geometry id.

        Raises:
            RuntimeError: If the maximum number of instances or lights is
                exceeded.
            ValueError: If material_id is invalid or a scale component is 0.
        """
        return self._add_geometry(
            GeometryType.CUBE, translation, rotation, scale, material_id, in_motion, displacement
        )

    def add_sphere(
        self,
        translation: Vec3 = (0.0, 0.0, 0.0),
        rotation: Vec3 = (0.0, 0.0, 0.0),
        scale: Vec3 = (1.0, 1.0, 1.0),
        material_id: int = 0,
        in_motion: bool = False,
        displacement: Vec3 = DEFAULT_DISPLACEMENT,
    ) -> int:
        """Add a sphere (unit diameter, placed by its transform).

        A uniform scale s gives a sphere of diameter s; non-uniform scale
        gives an ellipsoid. Arguments and errors are as for add_cube.

        Returns:
            The geometry id.
        """
        return self._add_geometry(
            GeometryType.SPHERE, translation, rotation, scale, material_id, in_motion, displacement
        )

    # =========================================================================
    # Motion
    # =========================================================================

    def has_motion(self) -> bool:
        """Return True if any instance is flagged as in motion."""
        return any(info.in_motion for info in self.geometry)

    def apply_motion(self, step: int, total_steps: int) -> None:
        """Move in-motion geometry to its position for one iteration.

        On step k of n, an instance sits at its base translation plus
        displacement * (k + 1) / n. Transforms are recomputed on the host and
        re-uploaded; geometry that is not in motion is left untouched.

        Raises:
            ValueError: If total_steps is not positive.
        """
        if total_steps <= 0:
            raise ValueError(f"total_steps must be positive, got {total_steps}")
        fraction = (step + 1) / total_steps
        for info in self.geometry:
            if info.in_motion:
                update_geometry_transform(info.geometry_id, info.transform_at(fraction))

    def reset_motion(self) -> None:
        """Put every in-motion instance back at its base translation."""
        for info in self.geometry:
            if info.in_motion:
                update_geometry_transform(info.geometry_id, info.transform_at(0.0))

    # =========================================================================
    # Scene Queries
    # =========================================================================

    def get_geometry_count(self) -> int:
        """Get the number of geometry instances in the scene."""
        return get_geometry_count()

    def get_light_count(self) -> int:
        """Get the number of lights in the scene."""
        return get_light_count()

    # =========================================================================
    # Scene Serialization
    # =========================================================================

    def to_config(self) -> SceneConfig:
        """Export the scene to a configuration object."""
        config = SceneConfig()
        for mat in self.materials:
            config.materials.append(dict(mat.params))
        for info in self.geometry:
            entry = asdict(info)
            entry.pop("geometry_id")
            entry["geometry_type"] = info.geometry_type.name.lower()
            config.geometry.append(entry)
        return config

    def from_config(self, config: SceneConfig) -> None:
        """Load a scene from a configuration object.

        Clears the current scene first.

        Raises:
            ValueError: If the configuration contains invalid data.
        """
        self.clear()
        for mat_config in config.materials:
            self.add_material(**mat_config)

        for geom_config in config.geometry:
            entry = dict(geom_config)
            type_name = str(entry.pop("geometry_type", "")).lower()
            if type_name == "cube":
                self.add_cube(**entry)
            elif type_name == "sphere":
                self.add_sphere(**entry)
            else:
                raise ValueError(f"Unknown geometry type: {type_name}")

    def to_dict(self) -> dict[str, Any]:
        """Export the scene to a dictionary (for JSON serialization)."""
        config = self.to_config()
        return {"materials": config.materials, "geometry": config.geometry}

    def from_dict(self, data: dict[str, Any]) -> None:
        """Load a scene from a dictionary with 'materials' and 'geometry' keys."""
        self.from_config(
            SceneConfig(materials=data.get("materials", []), geometry=data.get("geometry", []))
        )

    # =========================================================================
    # Capacity Information
    # =========================================================================

    @staticmethod
    def get_max_geometry() -> int:
        """Get the maximum number of geometry instances supported."""
        return MAX_GEOMETRY

    @staticmethod
    def get_max_materials() -> int:
        """Get the maximum number of materials supported."""
        return MAX_MATERIALS

    @staticmethod
    def get_max_lights() -> int:
        """Get the maximum number of lights supported."""
        return MAX_LIGHTS
