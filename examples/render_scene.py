#!/usr/bin/env python3
"""Render a demo scene with every primitive and material.

The scene has a diffuse floor plane, a mirror sphere, a glass sphere, a
glowing sphere, a red back wall built from a quad and a small tetrahedron
added as a triangle mesh. It is lit by a point light and a directional
light under a sky gradient.

Usage:
    python -m examples.render_scene [options]

Options:
    --width WIDTH           Image width in pixels (default: 640)
    --height HEIGHT         Image height in pixels (default: 480)
    --samples-level N       N x N samples per pixel (default: 3)
    --max-depth DEPTH       Maximum specular bounces (default: 5)
    --seed SEED             Sample pattern seed (default: 0)
    --arch ARCH             Taichi backend (default: cpu)
    --threads THREADS       CPU worker threads (default: one per core)
    --orthographic          Use an orthographic camera
    --output OUTPUT         Output file path (default: scene.png)
    --quiet                 Suppress progress output

Example:
    python -m examples.render_scene --width 320 --height 240 --samples-level 2
"""

import argparse
import logging
import sys
import time
from pathlib import Path

from prismtrace.config import RenderSettings, init_backend

logger = logging.getLogger("render_scene")

TETRAHEDRON_VERTICES = [
    (0.0, -1.0, -3.5),
    (0.6, -1.0, -3.5),
    (0.3, -0.4, -3.3),
    (0.3, -1.0, -3.0),
]
TETRAHEDRON_FACES = [(0, 2, 1), (0, 3, 2), (1, 2, 3), (0, 1, 3)]


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render the prismtrace demo scene.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--width", type=int, default=640, help="Image width (default: 640)")
    parser.add_argument("--height", type=int, default=480, help="Image height (default: 480)")
    parser.add_argument(
        "--samples-level",
        type=int,
        default=3,
        help="N for N x N samples per pixel (default: 3)",
    )
    parser.add_argument(
        "--max-depth", type=int, default=5, help="Maximum specular bounces (default: 5)"
    )
    parser.add_argument("--seed", type=int, default=0, help="Sample pattern seed (default: 0)")
    parser.add_argument(
        "--arch",
        default="cpu",
        choices=["cpu", "gpu", "cuda", "vulkan", "metal"],
        help="Taichi backend (default: cpu)",
    )
    parser.add_argument(
        "--threads", type=int, default=None, help="CPU worker threads (default: one per core)"
    )
    parser.add_argument(
        "--orthographic", action="store_true", help="Use an orthographic camera"
    )
    parser.add_argument(
        "--output", type=str, default="scene.png", help="Output file path (default: scene.png)"
    )
    parser.add_argument("--quiet", action="store_true", help="Suppress progress output")
    return parser.parse_args()


def build_demo_scene(aspect_ratio: float, orthographic: bool = False):
    """Populate and build the demo scene.

    Returns:
        The built SceneManager.
    """
    # Lazy imports so that Taichi fields are created after init_backend
    from prismtrace.camera import OrthographicCamera, PerspectiveCamera
    from prismtrace.scene.manager import SceneManager

    scene = SceneManager()
    floor = scene.add_diffuse_material((0.75, 0.75, 0.7), specular_weight=0.1, shininess=16.0)
    wall = scene.add_diffuse_material((0.7, 0.15, 0.15))
    tetra = scene.add_diffuse_material((0.2, 0.5, 0.8), specular_weight=0.4, shininess=64.0)
    mirror = scene.add_mirror_material((0.9, 0.9, 0.9))
    glass = scene.add_dielectric_material(1.5, transmittance=(0.95, 1.0, 0.95))
    glow = scene.add_emissive_material((4.0, 3.6, 3.0))

    scene.add_plane((0.0, -1.0, 0.0), (0.0, 1.0, 0.0), floor)
    scene.add_quad((-4.0, -1.0, -9.0), (8.0, 0.0, 0.0), (0.0, 5.0, 0.0), wall)
    scene.add_sphere((-1.4, 0.0, -5.0), 1.0, mirror)
    scene.add_sphere((1.2, -0.2, -4.0), 0.8, glass)
    scene.add_sphere((0.0, 2.6, -7.0), 0.4, glow)
    scene.add_triangle_mesh(TETRAHEDRON_VERTICES, TETRAHEDRON_FACES, tetra)

    scene.add_point_light((2.0, 5.0, 1.0), color=(1.0, 0.95, 0.9), intensity=0.9)
    scene.add_directional_light((-0.3, -1.0, -0.5), intensity=0.3)

    if orthographic:
        camera = OrthographicCamera(
            lookfrom=(0.0, 0.5, 1.0),
            lookat=(0.0, 0.0, -5.0),
            view_height=5.0,
            aspect_ratio=aspect_ratio,
        )
    else:
        camera = PerspectiveCamera(
            lookfrom=(0.0, 0.5, 1.0),
            lookat=(0.0, 0.0, -5.0),
            vfov=50.0,
            aspect_ratio=aspect_ratio,
        )
    scene.set_camera(camera)
    scene.build()
    return scene


def render_demo(
    settings: RenderSettings,
    output_path: str,
    orthographic: bool = False,
    quiet: bool = False,
) -> Path:
    """Render the demo scene and save it as a PNG.

    Returns:
        Path to the saved image file.
    """
    from prismtrace.core.renderer import Renderer

    build_demo_scene(settings.aspect_ratio, orthographic)
    renderer = Renderer(settings)

    start_time = time.time()

    def progress_callback(rows_done: int, total_rows: int) -> None:
        if not quiet:
            elapsed = time.time() - start_time
            print(
                f"\r  Progress: {rows_done}/{total_rows} rows "
                f"({100.0 * rows_done / total_rows:.1f}%) - {elapsed:.1f}s",
                end="",
                flush=True,
            )

    renderer.render(callback=progress_callback)
    if not quiet:
        print()

    output_file = Path(output_path)
    renderer.save_image(str(output_file))
    logger.info("Saved %s in %.2fs", output_file.absolute(), time.time() - start_time)
    return output_file


def main() -> int:
    """Main entry point."""
    args = parse_args()
    logging.basicConfig(
        level=logging.WARNING if args.quiet else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = RenderSettings(
            width=args.width,
            height=args.height,
            samples_level=args.samples_level,
            max_depth=args.max_depth,
            seed=args.seed,
            ambient=0.05,
            background_top=(0.45, 0.65, 1.0),
            background_bottom=(0.95, 0.95, 1.0),
        )
        init_backend(arch=args.arch, num_threads=args.threads)
        render_demo(settings, args.output, args.orthographic, args.quiet)
        return 0
    except (ValueError, RuntimeError) as e:
        logger.error("Render failed: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
