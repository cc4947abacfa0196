"""Counter-based random numbers for independent path lanes.

Every random decision a path makes is drawn from a generator whose state is a
pure function of ``(seed, iteration, pixel_index, depth)``. No generator state
is stored between kernel launches and no lane ever reads another lane's state,
so results do not depend on how the path pool is ordered, sorted or compacted.

The generator is a Wang hash used to scramble the key, followed by xorshift32
steps to produce a sequence of uniforms. Each call site builds a fresh state,
draws what it needs and drops it.

Example:
    >>> @ti.kernel
    ... def draw():
    ...     rng = make_rng(0, iteration, pixel_index, depth)
    ...     u1, rng = next_uniform(rng)
    ...     u2, rng = next_uniform(rng)
"""

import taichi as ti

# Stream used by the camera so primary-ray jitter never shares numbers with
# the depth-0 scattering decision of the same path.
CAMERA_STREAM = -1

# 2^-24: maps the top 24 bits of a 32-bit state to [0, 1)
_INV_2_POW_24 = 1.0 / 16777216.0


@ti.func
def wang_hash(value: ti.u32) -> ti.u32:
    """Scramble a 32-bit integer with Thomas Wang's integer hash."""
    h = (value ^ ti.cast(61, ti.u32)) ^ (value >> 16)
    h = h * ti.cast(9, ti.u32)
    h = h ^ (h >> 4)
    h = h * ti.cast(0x27D4EB2D, ti.u32)
    h = h ^ (h >> 15)
    return h


@ti.func
def make_rng(seed: ti.i32, iteration: ti.i32, pixel_index: ti.i32, depth: ti.i32) -> ti.u32:
    """Build the generator state for one path at one bounce.

    Args:
        seed: Render-wide seed from the render options.
        iteration: Sampling iteration index.
        pixel_index: Index of the pixel that owns the path.
        depth: Bounce index, or CAMERA_STREAM for primary-ray sampling.

    Returns:
        A non-zero 32-bit generator state.
    """
    key = wang_hash(ti.cast(iteration, ti.u32) * ti.cast(9781, ti.u32) + ti.cast(seed, ti.u32))
    key = wang_hash(key ^ (ti.cast(depth, ti.u32) * ti.cast(6271, ti.u32)))
    state = wang_hash(key ^ wang_hash(ti.cast(pixel_index, ti.u32)))
    if state == ti.cast(0, ti.u32):
        state = ti.cast(0x1E3779B9, ti.u32)
    return state


@ti.func
def next_uniform(state: ti.u32):
    """Advance the generator and return a uniform number.

    Args:
        state: Current generator state (must be non-zero).

    Returns:
        A tuple (u, new_state) where u is uniform in [0, 1).
    """
    x = state
    x = x ^ (x << 13)
    x = x ^ (x >> 17)
    x = x ^ (x << 5)
    u = ti.cast(x >> 8, ti.f32) * _INV_2_POW_24
    return u, x
