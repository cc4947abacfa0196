#!/usr/bin/env python3
"""Render a scene file, or the built-in Cornell box, to a PNG.

Usage:
    python -m examples.render_scene [SCENE] [options]

Options:
    --iterations N      Iterations to render (default: the scene's ITERATIONS)
    --depth N           Override the scene's trace depth
    --output OUTPUT     Output file path (default: <FILE>.png from the scene)
    --batch-size SIZE   Iterations per progress update (default: 10)
    --arch {gpu,cpu}    Taichi backend (default: gpu, falls back to cpu)
    --seed SEED         Random seed (default: 0)
    --no-antialiasing   Disable sub-pixel jitter
    --dof               Enable thin-lens depth of field
    --motion-blur       Move objects flagged MOTION 1 every iteration
    --cache             Cache the first bounce (implies --no-antialiasing)
    --sort              Sort paths by material before shading
    --direct            Direct light sampling for paths out of bounces
    --quiet             Suppress progress output
    --verbose           Enable debug logging

Example:
    python -m examples.render_scene examples/scenes/cornell.txt --iterations 200
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

import taichi as ti

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render a scene with the wavefront path tracer.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "scene",
        nargs="?",
        default=None,
        help="Scene file (default: built-in Cornell box)",
    )
    parser.add_argument("--iterations", type=int, default=None, help="Iterations to render")
    parser.add_argument("--depth", type=int, default=None, help="Override the trace depth")
    parser.add_argument("--output", type=str, default=None, help="Output file path")
    parser.add_argument(
        "--batch-size",
        type=int,
        default=10,
        help="Iterations per progress update (default: 10)",
    )
    parser.add_argument("--arch", choices=("gpu", "cpu"), default="gpu", help="Taichi backend")
    parser.add_argument("--seed", type=int, default=0, help="Random seed (default: 0)")
    parser.add_argument("--no-antialiasing", action="store_true", help="Disable pixel jitter")
    parser.add_argument("--dof", action="store_true", help="Enable depth of field")
    parser.add_argument("--motion-blur", action="store_true", help="Enable motion blur")
    parser.add_argument("--cache", action="store_true", help="Cache the first bounce")
    parser.add_argument("--sort", action="store_true", help="Sort paths by material")
    parser.add_argument("--direct", action="store_true", help="Enable direct lighting")
    parser.add_argument("--quiet", action="store_true", help="Suppress progress output")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def init_taichi(arch: str, quiet: bool) -> None:
    """Initialize Taichi, falling back to the CPU if no GPU backend works."""
    if arch == "gpu":
        try:
            ti.init(arch=ti.gpu)
            if not quiet:
                print("Using GPU backend")
            return
        except Exception as exc:
            logger.debug("GPU backend unavailable: %s", exc)
    ti.init(arch=ti.cpu)
    if not quiet:
        print("Using CPU backend")


def render_scene(args: argparse.Namespace) -> Path:
    """Load the scene, render it and save the image.

    Returns:
        Path to the saved image file.
    """
    # Lazy imports so Taichi is initialized before any field is declared
    from src.pathtracer.core.options import RenderOptions
    from src.pathtracer.core.progressive import ProgressiveRenderer
    from src.pathtracer.scene.cornell_box import create_cornell_box_scene
    from src.pathtracer.scene.loader import load_scene

    quiet = args.quiet

    if args.scene is None:
        scene, camera = create_cornell_box_scene()
    else:
        scene, camera = load_scene(args.scene)
    if args.depth is not None:
        camera.depth = args.depth

    iterations = camera.iterations if args.iterations is None else args.iterations
    if args.iterations is not None:
        camera.iterations = iterations

    options = RenderOptions(
        antialiasing=not (args.no_antialiasing or args.cache),
        depth_of_field=args.dof,
        motion_blur=args.motion_blur,
        cache_first_bounce=args.cache,
        sort_by_material=args.sort,
        direct_lighting=args.direct,
        seed=args.seed,
    )

    if not quiet:
        print(
            f"Scene: {camera.width}x{camera.height}, depth {camera.depth}, "
            f"{scene.get_geometry_count()} objects, {scene.get_light_count()} lights"
        )
        print(f"Rendering {iterations} iterations...")

    start_time = time.time()

    def progress_callback(current: int, target: int) -> None:
        if not quiet:
            elapsed = time.time() - start_time
            progress_pct = (current / target) * 100 if target > 0 else 0
            rate = current / elapsed if elapsed > 0 else 0
            print(
                f"\r  Progress: {current}/{target} iterations "
                f"({progress_pct:.1f}%) - {rate:.1f} it/s",
                end="",
                flush=True,
            )

    output_file = Path(args.output or f"{camera.output_name}.png")

    with ProgressiveRenderer(scene, camera, options) as renderer:
        renderer.render(iterations, batch_size=args.batch_size, callback=progress_callback)
        if not quiet:
            print()
        renderer.save_image(str(output_file))

    total_time = time.time() - start_time
    if not quiet:
        print(f"Saved to: {output_file.absolute()}")
        print(f"Total time: {total_time:.2f}s")

    return output_file


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    init_taichi(args.arch, args.quiet)

    try:
        render_scene(args)
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
