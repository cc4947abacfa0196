"""Wavefront Monte Carlo path tracer built on Taichi.

All in-flight paths of an iteration advance in lockstep: ray generation,
nearest-hit intersection, optional material sort, shading, accumulation of
terminated paths and stream compaction, repeated up to the bounce limit and
then across sampling iterations into one image accumulator.

Subpackages:
    core: Rays, random numbers, render options, the wavefront kernels and
        the progressive iteration driver
    camera: Camera settings and primary ray generation
    geometry: Box and sphere primitives and their transforms
    materials: Material store and BSDF sampling
    scene: Geometry store, lights, scene manager and scene file loader
    preview: Image export
"""

__version__ = "0.1.0"
