"""Renderer context owning the wavefront working set.

All per-render buffers live in one ``ti.FieldsBuilder`` tree owned by a
RenderContext, so they are allocated together when a renderer is created and
freed together when it is released:

    path pool      origin, direction, color (throughput), pixel, remaining
    hit records    t, point, normal, material, outside
    hit cache      depth-0 hit records of the first iteration
    image          per-pixel running RGB sum
    sort buckets   per-material counts and offsets
    counter        append cursor for compaction

The path pool and hit records are ping-pong buffers with a leading dimension
of 2. Compaction and sorting read slot ``src`` and write slot ``1 - src``;
the caller flips its slot index afterwards.

Example:
    >>> ctx = RenderContext(capacity=800 * 800)
    >>> survivors = ctx.compact(0, 800 * 800)
    >>> ctx.release()
"""

import logging

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from src.pathtracer.materials.material import MAX_MATERIALS

logger = logging.getLogger(__name__)

vec3 = tm.vec3

# Misses sort into bucket 0 and material m into bucket m + 1
NUM_SORT_BUCKETS = MAX_MATERIALS + 1


class ResourceAllocationError(RuntimeError):
    """The working-set buffers of a render could not be allocated."""


@ti.data_oriented
class RenderContext:
    """Owner of every buffer the wavefront pipeline works on.

    Attributes:
        capacity: Number of path slots (one per pixel).
    """

    def __init__(self, capacity: int) -> None:
        """Allocate the working set.

        Args:
            capacity: Number of paths per iteration (the pixel count).

        Raises:
            ValueError: If capacity is not positive.
            ResourceAllocationError: If the buffers cannot be allocated.
        """
        if capacity <= 0:
            raise ValueError(f"Capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._tree = None

        try:
            builder = ti.FieldsBuilder()

            # Path pool
            self.path_origin = ti.Vector.field(3, dtype=ti.f32)
            self.path_direction = ti.Vector.field(3, dtype=ti.f32)
            self.path_color = ti.Vector.field(3, dtype=ti.f32)
            self.path_pixel = ti.field(dtype=ti.i32)
            self.path_remaining = ti.field(dtype=ti.i32)
            for f in (
                self.path_origin,
                self.path_direction,
                self.path_color,
                self.path_pixel,
                self.path_remaining,
            ):
                builder.dense(ti.ij, (2, capacity)).place(f)

            # Hit records
            self.hit_t = ti.field(dtype=ti.f32)
            self.hit_point = ti.Vector.field(3, dtype=ti.f32)
            self.hit_normal = ti.Vector.field(3, dtype=ti.f32)
            self.hit_material = ti.field(dtype=ti.i32)
            self.hit_outside = ti.field(dtype=ti.i32)
            for f in (
                self.hit_t,
                self.hit_point,
                self.hit_normal,
                self.hit_material,
                self.hit_outside,
            ):
                builder.dense(ti.ij, (2, capacity)).place(f)

            # First-bounce cache
            self.cache_t = ti.field(dtype=ti.f32)
            self.cache_point = ti.Vector.field(3, dtype=ti.f32)
            self.cache_normal = ti.Vector.field(3, dtype=ti.f32)
            self.cache_material = ti.field(dtype=ti.i32)
            self.cache_outside = ti.field(dtype=ti.i32)
            for f in (
                self.cache_t,
                self.cache_point,
                self.cache_normal,
                self.cache_material,
                self.cache_outside,
            ):
                builder.dense(ti.i, capacity).place(f)

            # Image accumulator
            self.image = ti.Vector.field(3, dtype=ti.f32)
            builder.dense(ti.i, capacity).place(self.image)

            # Sort buckets and append counter
            self.bucket_count = ti.field(dtype=ti.i32)
            self.bucket_offset = ti.field(dtype=ti.i32)
            builder.dense(ti.i, NUM_SORT_BUCKETS).place(self.bucket_count)
            builder.dense(ti.i, NUM_SORT_BUCKETS).place(self.bucket_offset)
            self.counter = ti.field(dtype=ti.i32)
            builder.dense(ti.i, 1).place(self.counter)

            self._tree = builder.finalize()
        except Exception as exc:
            raise ResourceAllocationError(
                f"Could not allocate render buffers for {capacity} paths: {exc}"
            ) from exc

        logger.debug("Allocated render context for %d paths", capacity)

    # =========================================================================
    # Lifetime
    # =========================================================================

    @property
    def released(self) -> bool:
        return self._tree is None

    def check_alive(self) -> None:
        """Raise RuntimeError if the buffers have been released."""
        if self._tree is None:
            raise RuntimeError("RenderContext has been released")

    def release(self) -> None:
        """Free every buffer. Safe to call more than once."""
        if self._tree is not None:
            self._tree.destroy()
            self._tree = None
            logger.debug("Released render context for %d paths", self.capacity)

    def __enter__(self) -> "RenderContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    # =========================================================================
    # Stream Compaction
    # =========================================================================

    @ti.kernel
    def _compact(self, src: ti.i32, n: ti.i32):
        self.counter[0] = 0
        for i in range(n):
            if self.path_remaining[src, i] > 0:
                dst = 1 - src
                slot = ti.atomic_add(self.counter[0], 1)
                self.path_origin[dst, slot] = self.path_origin[src, i]
                self.path_direction[dst, slot] = self.path_direction[src, i]
                self.path_color[dst, slot] = self.path_color[src, i]
                self.path_pixel[dst, slot] = self.path_pixel[src, i]
                self.path_remaining[dst, slot] = self.path_remaining[src, i]

    def compact(self, src: int, n: int) -> int:
        """Move every live path of slot src into slot 1 - src.

        A path is live while its remaining-bounce count is > 0. Survivors
        keep no particular order.

        Args:
            src: Slot holding the current paths.
            n: Number of paths in the slot.

        Returns:
            The number of surviving paths.
        """
        self.check_alive()
        if n <= 0:
            return 0
        self._compact(src, n)
        return int(self.counter[0])

    # =========================================================================
    # Material Sort
    # =========================================================================

    @ti.kernel
    def _sort_by_material(self, src: ti.i32, n: ti.i32, num_buckets: ti.i32):
        for b in range(num_buckets):
            self.bucket_count[b] = 0

        for i in range(n):
            ti.atomic_add(self.bucket_count[self.hit_material[src, i] + 1], 1)

        ti.loop_config(serialize=True)
        for b in range(num_buckets):
            if b == 0:
                self.bucket_offset[b] = 0
            else:
                self.bucket_offset[b] = self.bucket_offset[b - 1] + self.bucket_count[b - 1]

        for i in range(n):
            dst = 1 - src
            slot = ti.atomic_add(self.bucket_offset[self.hit_material[src, i] + 1], 1)
            self.path_origin[dst, slot] = self.path_origin[src, i]
            self.path_direction[dst, slot] = self.path_direction[src, i]
            self.path_color[dst, slot] = self.path_color[src, i]
            self.path_pixel[dst, slot] = self.path_pixel[src, i]
            self.path_remaining[dst, slot] = self.path_remaining[src, i]
            self.hit_t[dst, slot] = self.hit_t[src, i]
            self.hit_point[dst, slot] = self.hit_point[src, i]
            self.hit_normal[dst, slot] = self.hit_normal[src, i]
            self.hit_material[dst, slot] = self.hit_material[src, i]
            self.hit_outside[dst, slot] = self.hit_outside[src, i]

    def sort_by_material(self, src: int, n: int) -> None:
        """Group (path, hit) pairs of slot src by material into slot 1 - src.

        A counting sort: misses (material -1) first, then ascending material
        id. Order inside one material is unspecified.
        """
        self.check_alive()
        if n > 0:
            self._sort_by_material(src, n, NUM_SORT_BUCKETS)

    # =========================================================================
    # Accumulation
    # =========================================================================

    @ti.kernel
    def _accumulate_terminated(self, src: ti.i32, n: ti.i32):
        for i in range(n):
            if self.path_remaining[src, i] == 0:
                self.image[self.path_pixel[src, i]] += self.path_color[src, i]

    def accumulate_terminated(self, src: int, n: int) -> None:
        """Add the throughput of every path whose budget reached 0.

        Must run before compaction so each terminated path is added exactly
        once.
        """
        self.check_alive()
        if n > 0:
            self._accumulate_terminated(src, n)

    def clear_image(self) -> None:
        """Zero the image accumulator."""
        self.check_alive()
        self.image.fill(0.0)

    def image_sum_numpy(self) -> npt.NDArray[np.float32]:
        """Return the running per-pixel sum, shape (capacity, 3)."""
        self.check_alive()
        return self.image.to_numpy()

    # =========================================================================
    # First-Bounce Cache
    # =========================================================================

    @ti.kernel
    def _store_first_bounce(self, src: ti.i32, n: ti.i32):
        for i in range(n):
            self.cache_t[i] = self.hit_t[src, i]
            self.cache_point[i] = self.hit_point[src, i]
            self.cache_normal[i] = self.hit_normal[src, i]
            self.cache_material[i] = self.hit_material[src, i]
            self.cache_outside[i] = self.hit_outside[src, i]

    @ti.kernel
    def _load_first_bounce(self, dst: ti.i32, n: ti.i32):
        for i in range(n):
            self.hit_t[dst, i] = self.cache_t[i]
            self.hit_point[dst, i] = self.cache_point[i]
            self.hit_normal[dst, i] = self.cache_normal[i]
            self.hit_material[dst, i] = self.cache_material[i]
            self.hit_outside[dst, i] = self.cache_outside[i]

    def store_first_bounce(self, src: int, n: int) -> None:
        """Copy the depth-0 hit records of slot src into the cache."""
        self.check_alive()
        if n > 0:
            self._store_first_bounce(src, n)

    def load_first_bounce(self, dst: int, n: int) -> None:
        """Copy the cached depth-0 hit records into slot dst."""
        self.check_alive()
        if n > 0:
            self._load_first_bounce(dst, n)

    # =========================================================================
    # Readback
    # =========================================================================

    def paths_numpy(self, buf: int, n: int) -> dict[str, npt.NDArray]:
        """Copy the first n paths of a slot to NumPy (for tests and tooling)."""
        self.check_alive()
        return {
            "origin": self.path_origin.to_numpy()[buf, :n],
            "direction": self.path_direction.to_numpy()[buf, :n],
            "color": self.path_color.to_numpy()[buf, :n],
            "pixel": self.path_pixel.to_numpy()[buf, :n],
            "remaining": self.path_remaining.to_numpy()[buf, :n],
        }

    def hits_numpy(self, buf: int, n: int) -> dict[str, npt.NDArray]:
        """Copy the first n hit records of a slot to NumPy."""
        self.check_alive()
        return {
            "t": self.hit_t.to_numpy()[buf, :n],
            "point": self.hit_point.to_numpy()[buf, :n],
            "normal": self.hit_normal.to_numpy()[buf, :n],
            "material": self.hit_material.to_numpy()[buf, :n],
            "outside": self.hit_outside.to_numpy()[buf, :n],
        }

    def __repr__(self) -> str:
        state = "released" if self.released else "live"
        return f"RenderContext(capacity={self.capacity}, {state})"
