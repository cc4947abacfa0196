"""Progressive renderer driving the wavefront iteration loop.

One iteration traces one path per pixel:

    generate rays
    repeat until no path is live or max depth is reached:
        intersect (or reuse the cached first bounce)
        sort by material (optional)
        shade
        accumulate paths that just terminated
        compact the survivors

Iterations add into the same image accumulator; the displayed image is the
running sum divided by the number of iterations so far.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from src.pathtracer.core.progressive import ProgressiveRenderer
    >>> from src.pathtracer.scene.cornell_box import create_cornell_box_scene
    >>>
    >>> scene, camera = create_cornell_box_scene()
    >>> with ProgressiveRenderer(scene, camera) as renderer:
    ...     renderer.render(100)
    ...     renderer.save_image("cornell.png")
"""

import logging
from collections.abc import Callable, Generator

import numpy as np
import numpy.typing as npt

from src.pathtracer.camera.camera import Camera, setup_camera
from src.pathtracer.core.context import RenderContext
from src.pathtracer.core.integrator import WavefrontIntegrator
from src.pathtracer.core.options import RenderOptions
from src.pathtracer.preview.export import image_to_uint8, save_png_from_array
from src.pathtracer.scene.manager import SceneManager

logger = logging.getLogger(__name__)

# Type alias for progress callback
# Callback receives (completed_iterations, target_iterations)
ProgressCallback = Callable[[int, int], None]


class ProgressiveRenderer:
    """A renderer that accumulates one path per pixel per iteration.

    The renderer owns a RenderContext with every working buffer; call
    release() (or use it as a context manager) to free them.

    Attributes:
        scene: The scene being rendered.
        camera: The camera; its depth is the per-path bounce budget.
        options: The enabled pipeline features.
    """

    def __init__(
        self,
        scene: SceneManager,
        camera: Camera,
        options: RenderOptions | None = None,
    ) -> None:
        """Set up the camera and allocate the working set.

        Raises:
            ValueError: If the camera or options are invalid.
            ResourceAllocationError: If the buffers cannot be allocated.
        """
        if options is None:
            options = RenderOptions()
        options.validate()

        self.scene = scene
        self.camera = camera
        self.options = options

        setup_camera(camera)
        self._ctx = RenderContext(camera.pixel_count)
        self._integrator = WavefrontIntegrator(self._ctx)
        self._iterations = 0
        self._cache_valid = False

        logger.info(
            "Renderer ready: %dx%d, depth %d, %d geometry, options %s",
            camera.width,
            camera.height,
            camera.depth,
            scene.get_geometry_count(),
            options,
        )

    @property
    def width(self) -> int:
        """Get the image width."""
        return self.camera.width

    @property
    def height(self) -> int:
        """Get the image height."""
        return self.camera.height

    @property
    def iterations(self) -> int:
        """Get the number of completed iterations."""
        return self._iterations

    @property
    def context(self) -> RenderContext:
        """Get the render context holding the working buffers."""
        return self._ctx

    def reset(self) -> None:
        """Start over: clear the accumulator, cache and geometry motion."""
        self._ctx.clear_image()
        self._iterations = 0
        self._cache_valid = False
        if self.options.motion_blur:
            self.scene.reset_motion()

    def render_iteration(self) -> int:
        """Trace one iteration and add it to the image.

        Returns:
            The number of shading rounds performed (at most the camera
            depth, fewer if every path terminated early).

        Raises:
            RuntimeError: If the renderer has been released.
        """
        ctx = self._ctx
        ctx.check_alive()
        options = self.options
        iteration = self._iterations
        max_depth = self.camera.depth

        if options.motion_blur:
            total = max(self.camera.iterations, 1)
            self.scene.apply_motion(min(iteration, total - 1), total)

        buf = 0
        active = self._integrator.generate_rays(
            buf,
            iteration,
            self.width,
            self.height,
            max_depth,
            options.antialiasing,
            options.depth_of_field,
            options.seed,
        )

        depth = 0
        while active > 0 and depth < max_depth:
            if options.cache_first_bounce and depth == 0 and self._cache_valid:
                ctx.load_first_bounce(buf, active)
            else:
                self._integrator.compute_intersections(buf, active)
                if options.cache_first_bounce and depth == 0:
                    ctx.store_first_bounce(buf, active)
                    self._cache_valid = True

            if options.sort_by_material:
                ctx.sort_by_material(buf, active)
                buf = 1 - buf

            self._integrator.shade(
                buf, active, iteration, depth, options.direct_lighting, options.seed
            )
            ctx.accumulate_terminated(buf, active)
            active = ctx.compact(buf, active)
            buf = 1 - buf
            depth += 1

        self._iterations += 1
        logger.debug("Iteration %d: %d shading rounds", iteration, depth)
        return depth

    def render(
        self,
        num_iterations: int = 1,
        batch_size: int = 1,
        callback: ProgressCallback | None = None,
    ) -> None:
        """Render iterations with an optional progress callback.

        Can be called repeatedly to keep refining the image.

        Args:
            num_iterations: Number of iterations to add.
            batch_size: Number of iterations between callbacks.
            callback: Optional function called after each batch with
                (completed_iterations, target_iterations).

        Example:
            >>> def progress(current, target):
            ...     print(f"Progress: {current}/{target} iterations")
            >>> renderer.render(100, batch_size=10, callback=progress)
        """
        for current, target in self.render_progressive(num_iterations, batch_size):
            if callback is not None:
                callback(current, target)

    def render_progressive(
        self,
        num_iterations: int = 1,
        batch_size: int = 1,
    ) -> Generator[tuple[int, int], None, None]:
        """Render iterations, yielding progress after each batch.

        Yields:
            Tuple of (completed_iterations, target_iterations).
        """
        if num_iterations <= 0:
            return
        batch_size = max(batch_size, 1)
        target = self._iterations + num_iterations

        remaining = num_iterations
        while remaining > 0:
            batch = min(batch_size, remaining)
            for _ in range(batch):
                self.render_iteration()
            remaining -= batch
            yield (self._iterations, target)

    def get_image_numpy(self) -> npt.NDArray[np.float32]:
        """Get the mean image (sum / iterations) as a NumPy array.

        Returns:
            Array of shape (height, width, 3), row 0 at the top and columns
            in viewer order (left to right). All zeros before the first
            iteration.
        """
        total = self._ctx.image_sum_numpy()
        mean = total / max(self._iterations, 1)
        image = mean.reshape(self.height, self.width, 3)[:, ::-1, :]
        return np.ascontiguousarray(image, dtype=np.float32)

    def get_image_uint8(self, gamma: float = 1.0) -> npt.NDArray[np.uint8]:
        """Get the mean image clamped to 8 bits.

        Args:
            gamma: Gamma correction applied before clamping (1.0 = none).

        Returns:
            Array of shape (height, width, 3) with dtype uint8.
        """
        return image_to_uint8(self.get_image_numpy(), gamma=gamma)

    def save_image(self, filepath: str, gamma: float = 1.0) -> None:
        """Save the mean image to a file (format from the extension)."""
        save_png_from_array(self.get_image_numpy(), filepath, gamma=gamma)

    def release(self) -> None:
        """Free the working buffers. The renderer cannot render afterwards."""
        self._ctx.release()

    def __enter__(self) -> "ProgressiveRenderer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __repr__(self) -> str:
        """Return a string representation of the renderer state."""
        return (
            f"ProgressiveRenderer(width={self.width}, height={self.height}, "
            f"iterations={self.iterations})"
        )
