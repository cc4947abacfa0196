"""Per-bounce wavefront kernels: ray generation, intersection and shading.

Each kernel runs one step of the pipeline for every path in one slot of the
RenderContext path pool, one parallel lane per path. Lanes never read each
other's state, and every random number a lane draws comes from a generator
keyed on (seed, iteration, pixel, depth), so the result does not depend on
the order of the pool.

Shading rules:
    miss          throughput = 0, path terminates
    emissive      throughput *= color * emittance, path terminates
    otherwise     scatter off the BSDF, throughput *= lobe factor,
                  remaining -= 1

A path that runs out of bounces without reaching a light is accumulated
with the throughput it carries. With direct lighting enabled, a one-sample
direct-light estimate at its last hit is added to that throughput first.

Example:
    >>> ctx = RenderContext(width * height)
    >>> integrator = WavefrontIntegrator(ctx)
    >>> integrator.generate_rays(0, iteration, width, height, max_depth, True, False, 0)
    >>> integrator.compute_intersections(0, width * height)
    >>> integrator.shade(0, width * height, iteration, 0, False, 0)
"""

import taichi as ti
import taichi.math as tm

from src.pathtracer.camera.camera import generate_camera_ray
from src.pathtracer.core.context import RenderContext
from src.pathtracer.core.rng import CAMERA_STREAM, make_rng, next_uniform
from src.pathtracer.materials.bsdf import scatter_material
from src.pathtracer.materials.material import (
    MaterialKind,
    material_colors,
    material_emittance,
    material_kinds,
)
from src.pathtracer.scene.intersection import intersect_scene
from src.pathtracer.scene.lights import estimate_direct_lighting

# Type alias for 3D vectors
vec3 = tm.vec3


@ti.data_oriented
class WavefrontIntegrator:
    """Kernels that advance the paths of a RenderContext by one step."""

    def __init__(self, ctx: RenderContext) -> None:
        self.ctx = ctx

    # =========================================================================
    # Ray Generation
    # =========================================================================

    @ti.kernel
    def _generate_rays(
        self,
        buf: ti.i32,
        iteration: ti.i32,
        width: ti.i32,
        height: ti.i32,
        max_depth: ti.i32,
        antialiasing: ti.i32,
        depth_of_field: ti.i32,
        seed: ti.i32,
    ):
        for i in range(width * height):
            x = i % width
            y = i // width

            rng = make_rng(seed, iteration, i, CAMERA_STREAM)
            u1, rng = next_uniform(rng)
            u2, rng = next_uniform(rng)
            u3, rng = next_uniform(rng)
            u4, rng = next_uniform(rng)

            jitter_x = 0.0
            jitter_y = 0.0
            if antialiasing != 0:
                jitter_x = u1
                jitter_y = u2

            origin, direction = generate_camera_ray(
                x, y, width, height, jitter_x, jitter_y, u3, u4, depth_of_field
            )

            self.ctx.path_origin[buf, i] = origin
            self.ctx.path_direction[buf, i] = direction
            self.ctx.path_color[buf, i] = vec3(1.0, 1.0, 1.0)
            self.ctx.path_pixel[buf, i] = i
            self.ctx.path_remaining[buf, i] = max_depth

    def generate_rays(
        self,
        buf: int,
        iteration: int,
        width: int,
        height: int,
        max_depth: int,
        antialiasing: bool,
        depth_of_field: bool,
        seed: int,
    ) -> int:
        """Seed one path per pixel into slot buf.

        Path i belongs to pixel i = x + y * width, starts with white
        throughput and a budget of max_depth bounces.

        Returns:
            The number of paths generated.
        """
        self.ctx.check_alive()
        count = width * height
        if count > self.ctx.capacity:
            raise ValueError(
                f"{width}x{height} image needs {count} paths, context holds {self.ctx.capacity}"
            )
        self._generate_rays(
            buf,
            iteration,
            width,
            height,
            max_depth,
            int(antialiasing),
            int(depth_of_field),
            seed,
        )
        return count

    # =========================================================================
    # Intersection
    # =========================================================================

    @ti.kernel
    def _compute_intersections(self, buf: ti.i32, n: ti.i32):
        for i in range(n):
            record = intersect_scene(self.ctx.path_origin[buf, i], self.ctx.path_direction[buf, i])
            self.ctx.hit_t[buf, i] = record.t
            self.ctx.hit_point[buf, i] = record.point
            self.ctx.hit_normal[buf, i] = record.normal
            self.ctx.hit_material[buf, i] = record.material_id
            self.ctx.hit_outside[buf, i] = record.outside

    def compute_intersections(self, buf: int, n: int) -> None:
        """Find the nearest hit of the first n paths of slot buf."""
        self.ctx.check_alive()
        if n > 0:
            self._compute_intersections(buf, n)

    # =========================================================================
    # Shading
    # =========================================================================

    @ti.kernel
    def _shade(
        self,
        buf: ti.i32,
        n: ti.i32,
        iteration: ti.i32,
        depth: ti.i32,
        direct_lighting: ti.i32,
        seed: ti.i32,
    ):
        for i in range(n):
            color = self.ctx.path_color[buf, i]
            remaining = self.ctx.path_remaining[buf, i]
            origin = self.ctx.path_origin[buf, i]
            direction = self.ctx.path_direction[buf, i]

            if self.ctx.hit_t[buf, i] <= 0.0:
                color = vec3(0.0, 0.0, 0.0)
                remaining = 0
            else:
                material_id = self.ctx.hit_material[buf, i]
                point = self.ctx.hit_point[buf, i]
                normal = self.ctx.hit_normal[buf, i]

                if material_kinds[material_id] == int(MaterialKind.EMISSIVE):
                    color = color * material_colors[material_id] * material_emittance[material_id]
                    remaining = 0
                else:
                    rng = make_rng(seed, iteration, self.ctx.path_pixel[buf, i], depth)
                    new_origin, new_direction, factor, rng = scatter_material(
                        material_id,
                        direction,
                        point,
                        normal,
                        self.ctx.hit_outside[buf, i],
                        rng,
                    )
                    color = color * factor
                    origin = new_origin
                    direction = new_direction
                    remaining -= 1

                    if remaining == 0 and direct_lighting != 0:
                        color = color + estimate_direct_lighting(point, normal, rng)

            self.ctx.path_color[buf, i] = color
            self.ctx.path_remaining[buf, i] = remaining
            self.ctx.path_origin[buf, i] = origin
            self.ctx.path_direction[buf, i] = direction

    def shade(
        self,
        buf: int,
        n: int,
        iteration: int,
        depth: int,
        direct_lighting: bool,
        seed: int,
    ) -> None:
        """Shade the first n paths of slot buf against their hit records."""
        self.ctx.check_alive()
        if n > 0:
            self._shade(buf, n, iteration, depth, int(direct_lighting), seed)
