"""Cornell box scene configuration.

This module provides a factory for the Cornell box built from boxes and one
sphere, laid out like the classic scene file:

- A 10 x 10 x 10 room centred on x = 0, z = 0 with the floor at y = 0
- Left wall: red diffuse, right wall: green diffuse
- Back wall, floor and ceiling: white diffuse
- A flat emissive box hanging just under the ceiling
- One sphere whose material is selectable (diffuse, mirror or glass)

The camera stands in the open front of the room looking at its centre.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from src.pathtracer.scene.cornell_box import create_cornell_box_scene
    >>> scene, camera = create_cornell_box_scene()
"""

from dataclasses import dataclass

from src.pathtracer.camera.camera import Camera
from src.pathtracer.scene.manager import SceneManager

# =============================================================================
# Cornell Box Parameters
# =============================================================================

SPHERE_MATERIALS = ("diffuse", "mirror", "glass")


@dataclass
class CornellBoxParams:
    """Parameters for configuring a Cornell box scene.

    Attributes:
        light_emittance: Emittance of the ceiling light.
        light_color: RGB color of the light.
        left_wall_color: RGB albedo of the left wall.
        right_wall_color: RGB albedo of the right wall.
        white_color: RGB albedo of the back wall, floor and ceiling.
        sphere_material: One of "diffuse", "mirror" or "glass".
        sphere_in_motion: Move the sphere when motion blur is enabled.
        resolution: Image size in pixels.
        iterations: Number of sampling iterations.
        depth: Maximum bounces per path.

    Example:
        >>> params = CornellBoxParams(sphere_material="glass", light_emittance=8.0)
    """

    light_emittance: float = 5.0
    light_color: tuple[float, float, float] = (1.0, 1.0, 1.0)
    left_wall_color: tuple[float, float, float] = (0.85, 0.35, 0.35)
    right_wall_color: tuple[float, float, float] = (0.35, 0.85, 0.35)
    white_color: tuple[float, float, float] = (0.98, 0.98, 0.98)
    sphere_material: str = "diffuse"
    sphere_in_motion: bool = False
    resolution: tuple[int, int] = (800, 800)
    iterations: int = 5000
    depth: int = 8


# =============================================================================
# Cornell Box Constants
# =============================================================================

ROOM_SIZE = 10.0
WALL_THICKNESS = 0.01
GLASS_IOR = 1.5


# =============================================================================
# Cornell Box Factory
# =============================================================================


def create_cornell_box_scene(
    params: CornellBoxParams | None = None,
    scene: SceneManager | None = None,
) -> tuple[SceneManager, Camera]:
    """Create the Cornell box scene.

    Args:
        params: Optional CornellBoxParams; defaults are used if None.
        scene: Manager to build into; a new one is created if omitted.
            Any existing content is cleared.

    Returns:
        A tuple of (SceneManager, Camera).

    Raises:
        ValueError: If params.sphere_material is not recognised.
    """
    if params is None:
        params = CornellBoxParams()
    if params.sphere_material not in SPHERE_MATERIALS:
        raise ValueError(
            f"sphere_material must be one of {SPHERE_MATERIALS}, got {params.sphere_material!r}"
        )

    if scene is None:
        scene = SceneManager()
    else:
        scene.clear()

    half = ROOM_SIZE / 2.0

    # =========================================================================
    # Materials
    # =========================================================================

    light_mat = scene.add_material(color=params.light_color, emittance=params.light_emittance)
    white_mat = scene.add_material(color=params.white_color)
    red_mat = scene.add_material(color=params.left_wall_color)
    green_mat = scene.add_material(color=params.right_wall_color)

    if params.sphere_material == "mirror":
        sphere_mat = scene.add_material(
            color=params.white_color,
            specular_color=params.white_color,
            reflective=1.0,
        )
    elif params.sphere_material == "glass":
        sphere_mat = scene.add_material(
            color=params.white_color,
            specular_color=params.white_color,
            refractive=1.0,
            ior=GLASS_IOR,
        )
    else:
        sphere_mat = white_mat

    # =========================================================================
    # Room
    # =========================================================================

    # Ceiling light
    scene.add_cube(translation=(0.0, ROOM_SIZE, 0.0), scale=(3.0, 0.3, 3.0), material_id=light_mat)

    # Floor
    scene.add_cube(
        translation=(0.0, 0.0, 0.0),
        scale=(ROOM_SIZE, WALL_THICKNESS, ROOM_SIZE),
        material_id=white_mat,
    )

    # Ceiling
    scene.add_cube(
        translation=(0.0, ROOM_SIZE, 0.0),
        rotation=(0.0, 0.0, 90.0),
        scale=(WALL_THICKNESS, ROOM_SIZE, ROOM_SIZE),
        material_id=white_mat,
    )

    # Back wall
    scene.add_cube(
        translation=(0.0, half, -half),
        rotation=(0.0, 90.0, 0.0),
        scale=(WALL_THICKNESS, ROOM_SIZE, ROOM_SIZE),
        material_id=white_mat,
    )

    # Left wall
    scene.add_cube(
        translation=(-half, half, 0.0),
        scale=(WALL_THICKNESS, ROOM_SIZE, ROOM_SIZE),
        material_id=red_mat,
    )

    # Right wall
    scene.add_cube(
        translation=(half, half, 0.0),
        scale=(WALL_THICKNESS, ROOM_SIZE, ROOM_SIZE),
        material_id=green_mat,
    )

    # Sphere
    scene.add_sphere(
        translation=(-1.0, 4.0, -1.0),
        scale=(3.0, 3.0, 3.0),
        material_id=sphere_mat,
        in_motion=params.sphere_in_motion,
    )

    # =========================================================================
    # Camera Setup
    # =========================================================================

    camera = Camera(
        resolution=params.resolution,
        fovy=45.0,
        eye=(0.0, half, 10.5),
        look_at=(0.0, half, 0.0),
        up=(0.0, 1.0, 0.0),
        iterations=params.iterations,
        depth=params.depth,
        output_name="cornell",
    )

    return scene, camera
