"""Runtime render options.

Each optional stage of the wavefront pipeline is switched on or off through
a ``RenderOptions`` record instead of being compiled in. The options are plain
Python values; the kernels receive them as arguments on every launch.

Example:
    >>> options = RenderOptions(antialiasing=False, cache_first_bounce=True)
    >>> options.validate()
"""

from dataclasses import dataclass


@dataclass
class RenderOptions:
    """Independently settable pipeline features.

    Attributes:
        antialiasing: Jitter primary rays uniformly inside their pixel.
        depth_of_field: Use the thin-lens camera (needs a lens radius > 0).
        motion_blur: Move geometry flagged "in motion" a little every iteration.
        cache_first_bounce: Reuse the depth-0 intersections of the first
            iteration on every later iteration.
        sort_by_material: Group paths by material id before shading.
        direct_lighting: Sample one light for paths that run out of bounces.
        seed: Render-wide seed mixed into every path's random stream.
    """

    antialiasing: bool = True
    depth_of_field: bool = False
    motion_blur: bool = False
    cache_first_bounce: bool = False
    sort_by_material: bool = False
    direct_lighting: bool = False
    seed: int = 0

    def validate(self) -> None:
        """Check that the enabled features can be combined.

        The first-bounce cache is only correct when the camera rays and the
        geometry are identical on every iteration.

        Raises:
            ValueError: If the cache is combined with a per-iteration effect.
        """
        if self.cache_first_bounce:
            conflicts = [
                name
                for name, enabled in (
                    ("antialiasing", self.antialiasing),
                    ("depth_of_field", self.depth_of_field),
                    ("motion_blur", self.motion_blur),
                )
                if enabled
            ]
            if conflicts:
                raise ValueError(
                    "cache_first_bounce requires iteration-invariant primary rays; "
                    f"disable {', '.join(conflicts)}"
                )
        if self.seed < 0:
            raise ValueError(f"seed must be non-negative, got {self.seed}")
