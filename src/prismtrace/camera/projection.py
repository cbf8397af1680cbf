"""GPU-side camera state and primary ray generation.

setup_camera copies a camera's viewport into Taichi fields; generate_ray
turns a pixel and a sub-pixel sample offset into a primary ray inside a
kernel. Pixel (0, 0) is the bottom-left corner of the image.
"""

import taichi as ti
import taichi.math as tm

from prismtrace.camera.orthographic import OrthographicCamera
from prismtrace.camera.perspective import PerspectiveCamera, ProjectionKind
from prismtrace.core.ray import Ray, make_ray, vec3

_camera_kind = ti.field(dtype=ti.i32, shape=())
_camera_origin = ti.Vector.field(3, dtype=ti.f32, shape=())
_lower_left_corner = ti.Vector.field(3, dtype=ti.f32, shape=())
_viewport_horizontal = ti.Vector.field(3, dtype=ti.f32, shape=())
_viewport_vertical = ti.Vector.field(3, dtype=ti.f32, shape=())
_view_direction = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_ready = ti.field(dtype=ti.i32, shape=())


def setup_camera(camera: PerspectiveCamera | OrthographicCamera) -> None:
    """Make camera the active camera for ray generation.

    Args:
        camera: Perspective or orthographic camera configuration.
    """
    viewport = camera.viewport()
    _camera_kind[None] = int(viewport.kind)
    _camera_origin[None] = viewport.origin.tolist()
    _lower_left_corner[None] = viewport.lower_left.tolist()
    _viewport_horizontal[None] = viewport.horizontal.tolist()
    _viewport_vertical[None] = viewport.vertical.tolist()
    _view_direction[None] = viewport.direction.tolist()
    _camera_ready[None] = 1


def is_camera_ready() -> bool:
    return _camera_ready[None] == 1


def reset_camera() -> None:
    _camera_ready[None] = 0


@ti.func
def get_ray(s: ti.f32, t: ti.f32) -> Ray:
    """Generate a ray through normalized image coordinates (s, t).

    Args:
        s: Horizontal coordinate in [0, 1] (left to right).
        t: Vertical coordinate in [0, 1] (bottom to top).

    Returns:
        A Ray with a normalized direction.
    """
    point = _lower_left_corner[None] + s * _viewport_horizontal[None] + t * _viewport_vertical[None]
    origin = _camera_origin[None]
    direction = _view_direction[None]
    if _camera_kind[None] == int(ProjectionKind.PERSPECTIVE):
        direction = tm.normalize(point - origin)
    else:
        origin = point
    return make_ray(origin, direction)


@ti.func
def generate_ray(
    pixel_x: ti.i32,
    pixel_y: ti.i32,
    sample_offset: tm.vec2,
    width: ti.i32,
    height: ti.i32,
) -> Ray:
    """Primary ray for a pixel and a sub-pixel offset in [0, 1)^2."""
    s = (ti.cast(pixel_x, ti.f32) + sample_offset.x) / ti.cast(width, ti.f32)
    t = (ti.cast(pixel_y, ti.f32) + sample_offset.y) / ti.cast(height, ti.f32)
    return get_ray(s, t)


_ray_origin_out = ti.Vector.field(3, dtype=ti.f32, shape=())
_ray_direction_out = ti.Vector.field(3, dtype=ti.f32, shape=())


@ti.kernel
def _primary_ray_kernel(
    pixel_x: ti.i32,
    pixel_y: ti.i32,
    offset_x: ti.f32,
    offset_y: ti.f32,
    width: ti.i32,
    height: ti.i32,
):
    ray = generate_ray(pixel_x, pixel_y, tm.vec2(offset_x, offset_y), width, height)
    _ray_origin_out[None] = ray.origin
    _ray_direction_out[None] = ray.direction


def primary_ray(
    pixel_x: int,
    pixel_y: int,
    width: int,
    height: int,
    sample_offset: tuple[float, float] = (0.5, 0.5),
) -> tuple[vec3, vec3]:
    """Primary ray for a pixel, evaluated from Python.

    Returns:
        Tuple of (origin, direction) as Taichi vectors.
    """
    _primary_ray_kernel(pixel_x, pixel_y, sample_offset[0], sample_offset[1], width, height)
    return _ray_origin_out[None], _ray_direction_out[None]
