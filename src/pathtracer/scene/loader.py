"""Reader for the keyword/value scene description format.

A scene file is a sequence of blocks separated by blank lines. Each block
starts with a header line and is followed by one ``KEY value...`` line per
property. ``//`` starts a comment that runs to the end of the line; a line
holding only a comment is skipped without ending the block.

    MATERIAL 0
    RGB         1 1 1
    EMITTANCE   5

    CAMERA
    RES         800 800
    FOVY        45
    ITERATIONS  5000
    DEPTH       8
    FILE        cornell
    EYE         0.0 5 10.5
    LOOKAT      0 5 0
    UP          0 1 0

    OBJECT 0
    cube
    material 0
    TRANS       0 10 0
    ROTAT       0 0 0
    SCALE       3 .3 3

Materials and objects are numbered from zero in the order they appear.
Besides the classic keys, CAMERA accepts ``LENSRADIUS`` and ``FOCALDIST``
(thin-lens depth of field) and OBJECT accepts ``MOTION 0|1`` and
``DISPLACE x y z`` (total motion-blur translation).

Parsing is separate from upload: parse_scene only builds a SceneDescription,
and load_scene uploads it through a SceneManager.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from src.pathtracer.camera.camera import Camera
from src.pathtracer.geometry.transform import Vec3
from src.pathtracer.scene.manager import DEFAULT_DISPLACEMENT, SceneManager

logger = logging.getLogger(__name__)


class SceneFormatError(ValueError):
    """Malformed scene description.

    Attributes:
        line: 1-based line number of the offending line, or None when the
            problem is not tied to one line (e.g. a missing CAMERA block).
    """

    def __init__(self, message: str, line: int | None = None) -> None:
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)


@dataclass
class MaterialDescription:
    """Properties of one MATERIAL block."""

    color: Vec3 = (0.0, 0.0, 0.0)
    specular_color: Vec3 = (1.0, 1.0, 1.0)
    specular_exponent: float = 0.0
    reflective: float = 0.0
    refractive: float = 0.0
    ior: float = 1.0
    emittance: float = 0.0
    line: int = 0


@dataclass
class ObjectDescription:
    """Properties of one OBJECT block."""

    kind: str = ""
    material_id: int = -1
    translation: Vec3 = (0.0, 0.0, 0.0)
    rotation: Vec3 = (0.0, 0.0, 0.0)
    scale: Vec3 = (1.0, 1.0, 1.0)
    in_motion: bool = False
    displacement: Vec3 = DEFAULT_DISPLACEMENT
    line: int = 0


@dataclass
class SceneDescription:
    """Everything a scene file describes, before upload."""

    camera: Camera
    materials: list[MaterialDescription] = field(default_factory=list)
    objects: list[ObjectDescription] = field(default_factory=list)


def _strip_comment(line: str) -> str:
    index = line.find("//")
    if index >= 0:
        line = line[:index]
    return line.strip()


def _floats(values: list[str], count: int, key: str, line: int) -> tuple[float, ...]:
    if len(values) != count:
        raise SceneFormatError(f"{key} expects {count} value(s), got {len(values)}", line)
    try:
        return tuple(float(v) for v in values)
    except ValueError:
        raise SceneFormatError(f"{key} expects numbers, got {' '.join(values)!r}", line) from None


def _int(values: list[str], key: str, line: int) -> int:
    if len(values) != 1:
        raise SceneFormatError(f"{key} expects 1 value, got {len(values)}", line)
    try:
        return int(values[0])
    except ValueError:
        raise SceneFormatError(f"{key} expects an integer, got {values[0]!r}", line) from None


def _vec3(values: list[str], key: str, line: int) -> Vec3:
    x, y, z = _floats(values, 3, key, line)
    return (x, y, z)


def _float(values: list[str], key: str, line: int) -> float:
    return _floats(values, 1, key, line)[0]


def _parse_material(
    entries: list[tuple[int, str, list[str]]], header_line: int
) -> MaterialDescription:
    material = MaterialDescription(line=header_line)
    for line, key, values in entries:
        if key == "RGB":
            material.color = _vec3(values, key, line)
        elif key == "SPECRGB":
            material.specular_color = _vec3(values, key, line)
        elif key == "SPECEX":
            material.specular_exponent = _float(values, key, line)
        elif key == "REFL":
            material.reflective = _float(values, key, line)
        elif key == "REFR":
            material.refractive = _float(values, key, line)
        elif key == "REFRIOR":
            material.ior = _float(values, key, line)
        elif key == "EMITTANCE":
            material.emittance = _float(values, key, line)
        else:
            raise SceneFormatError(f"Unknown MATERIAL key {key!r}", line)
    return material


def _parse_object(
    entries: list[tuple[int, str, list[str]]], header_line: int
) -> ObjectDescription:
    obj = ObjectDescription(line=header_line)
    for line, key, values in entries:
        lowered = key.lower()
        if lowered in ("cube", "sphere") and not values:
            obj.kind = lowered
        elif key == "material":
            obj.material_id = _int(values, key, line)
        elif key == "TRANS":
            obj.translation = _vec3(values, key, line)
        elif key == "ROTAT":
            obj.rotation = _vec3(values, key, line)
        elif key == "SCALE":
            obj.scale = _vec3(values, key, line)
        elif key == "MOTION":
            flag = _int(values, key, line)
            if flag not in (0, 1):
                raise SceneFormatError(f"MOTION expects 0 or 1, got {flag}", line)
            obj.in_motion = flag == 1
        elif key == "DISPLACE":
            obj.displacement = _vec3(values, key, line)
        else:
            raise SceneFormatError(f"Unknown OBJECT key {key!r}", line)
    if not obj.kind:
        raise SceneFormatError("OBJECT has no primitive kind (cube or sphere)", header_line)
    if obj.material_id < 0:
        raise SceneFormatError("OBJECT has no material", header_line)
    return obj


def _parse_camera(entries: list[tuple[int, str, list[str]]], header_line: int) -> Camera:
    settings: dict[str, object] = {}
    for line, key, values in entries:
        if key == "RES":
            if len(values) != 2:
                raise SceneFormatError(f"RES expects 2 value(s), got {len(values)}", line)
            settings["resolution"] = (_int(values[:1], key, line), _int(values[1:], key, line))
        elif key == "FOVY":
            settings["fovy"] = _float(values, key, line)
        elif key == "ITERATIONS":
            settings["iterations"] = _int(values, key, line)
        elif key == "DEPTH":
            settings["depth"] = _int(values, key, line)
        elif key == "FILE":
            if len(values) != 1:
                raise SceneFormatError(f"FILE expects 1 value, got {len(values)}", line)
            settings["output_name"] = values[0]
        elif key == "EYE":
            settings["eye"] = _vec3(values, key, line)
        elif key == "LOOKAT":
            settings["look_at"] = _vec3(values, key, line)
        elif key == "UP":
            settings["up"] = _vec3(values, key, line)
        elif key == "LENSRADIUS":
            settings["lens_radius"] = _float(values, key, line)
        elif key == "FOCALDIST":
            settings["focal_distance"] = _float(values, key, line)
        else:
            raise SceneFormatError(f"Unknown CAMERA key {key!r}", line)

    for required, key in (("resolution", "RES"), ("fovy", "FOVY"), ("eye", "EYE"), ("look_at", "LOOKAT")):
        if required not in settings:
            raise SceneFormatError(f"CAMERA is missing {key}", header_line)

    camera = Camera(**settings)
    try:
        camera.validate()
    except ValueError as exc:
        raise SceneFormatError(str(exc), header_line) from exc
    return camera


def parse_scene(text: str) -> SceneDescription:
    """Parse scene description text.

    Args:
        text: Contents of a scene file.

    Returns:
        The parsed SceneDescription.

    Raises:
        SceneFormatError: If the text is malformed. The error carries the
            line number of the offending line.
    """
    # (kind, header line, id, entries)
    blocks: list[tuple[str, int, int, list[tuple[int, str, list[str]]]]] = []
    current: list[tuple[int, str, list[str]]] | None = None

    for number, raw in enumerate(text.splitlines(), start=1):
        if not raw.strip():
            current = None
            continue
        line = _strip_comment(raw)
        if not line:
            # Comment-only lines do not end a block
            continue

        tokens = line.split()
        key, values = tokens[0], tokens[1:]

        if key in ("MATERIAL", "OBJECT", "CAMERA"):
            block_id = -1
            if key == "CAMERA":
                if values:
                    raise SceneFormatError("CAMERA takes no id", number)
            else:
                block_id = _int(values, key, number)
            current = []
            blocks.append((key, number, block_id, current))
        elif current is None:
            raise SceneFormatError(f"{key!r} outside of a MATERIAL, OBJECT or CAMERA block", number)
        else:
            current.append((number, key, values))

    camera: Camera | None = None
    materials: list[MaterialDescription] = []
    objects: list[ObjectDescription] = []

    for kind, header_line, block_id, entries in blocks:
        if kind == "CAMERA":
            if camera is not None:
                raise SceneFormatError("Duplicate CAMERA block", header_line)
            camera = _parse_camera(entries, header_line)
        elif kind == "MATERIAL":
            if block_id != len(materials):
                raise SceneFormatError(
                    f"MATERIAL ids must be consecutive from 0, expected {len(materials)}, got {block_id}",
                    header_line,
                )
            materials.append(_parse_material(entries, header_line))
        else:
            if block_id != len(objects):
                raise SceneFormatError(
                    f"OBJECT ids must be consecutive from 0, expected {len(objects)}, got {block_id}",
                    header_line,
                )
            objects.append(_parse_object(entries, header_line))

    if camera is None:
        raise SceneFormatError("Scene has no CAMERA block")

    for obj in objects:
        if obj.material_id >= len(materials):
            raise SceneFormatError(f"OBJECT references undefined material {obj.material_id}", obj.line)

    return SceneDescription(camera=camera, materials=materials, objects=objects)


def build_scene(description: SceneDescription, scene: SceneManager | None = None) -> SceneManager:
    """Upload a parsed description into a (cleared) SceneManager.

    Raises:
        ValueError: If a material or transform is invalid.
        RuntimeError: If a store capacity is exceeded.
    """
    if scene is None:
        scene = SceneManager()
    else:
        scene.clear()

    for material in description.materials:
        try:
            scene.add_material(
                color=material.color,
                specular_color=material.specular_color,
                specular_exponent=material.specular_exponent,
                reflective=material.reflective,
                refractive=material.refractive,
                ior=material.ior,
                emittance=material.emittance,
            )
        except ValueError as exc:
            raise SceneFormatError(str(exc), material.line) from exc

    for obj in description.objects:
        add = scene.add_cube if obj.kind == "cube" else scene.add_sphere
        try:
            add(
                translation=obj.translation,
                rotation=obj.rotation,
                scale=obj.scale,
                material_id=obj.material_id,
                in_motion=obj.in_motion,
                displacement=obj.displacement,
            )
        except ValueError as exc:
            raise SceneFormatError(str(exc), obj.line) from exc

    return scene


def load_scene(path: str | Path, scene: SceneManager | None = None) -> tuple[SceneManager, Camera]:
    """Read a scene file and upload it.

    Args:
        path: Path to the scene file.
        scene: Manager to load into; a new one is created if omitted.

    Returns:
        Tuple of (scene, camera).

    Raises:
        OSError: If the file cannot be read.
        SceneFormatError: If the file is malformed.
    """
    path = Path(path)
    description = parse_scene(path.read_text())
    scene = build_scene(description, scene)
    logger.info(
        "Loaded scene %s: %d materials, %d objects, %d lights",
        path.name,
        scene.get_material_count(),
        scene.get_geometry_count(),
        scene.get_light_count(),
    )
    return scene, description.camera
