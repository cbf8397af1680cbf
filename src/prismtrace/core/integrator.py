"""Whitted-style shading integrator and the render target.

Shading follows the classic recursive ray tracer: diffuse surfaces gather
direct light through shadow rays, mirrors spawn a reflected ray, dielectrics
spawn a reflected and a refracted ray, and emissive surfaces return their
color. Kernel code cannot recurse, so the recursion runs on a small
fixed-size stack of pending rays, each carrying its origin, direction,
accumulated weight and depth. A ray at depth max_depth is still traced and
shaded but spawns nothing, so every primary ray finishes after at most
max_depth + 1 scene traversals along any branch, whatever the geometry.

Colors are non-negative and unclamped while shading. Each pixel averages the
radiance of its N x N multi-jittered samples and the average is clamped to
[0, 1] once, when it is written to the color buffer.

Rendering proceeds in blocks of rows. Each block is one kernel launch whose
outermost loop runs in parallel across the Taichi worker threads, one pixel
per iteration, so every pixel is written exactly once by exactly one thread.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from prismtrace.config import RenderSettings
    >>> from prismtrace.core.integrator import configure, render_image, setup_render_target
    >>> settings = RenderSettings(width=64, height=48)
    >>> configure(settings)
    >>> setup_render_target(64, 48)
    >>> render_image()  # after a scene has been built
"""

import logging

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from prismtrace.camera.projection import generate_ray, is_camera_ready
from prismtrace.config import MAX_PATTERNS, MAX_SAMPLES_LEVEL, MAX_TRACE_DEPTH, RenderSettings
from prismtrace.core.ray import T_MAX, T_MIN, Ray, offset_ray_origin, vec3
from prismtrace.core.sampler import MultiJitteredSampler
from prismtrace.materials.base import MaterialKind
from prismtrace.materials.dielectric import split_dielectric
from prismtrace.materials.diffuse import eval_diffuse
from prismtrace.materials.mirror import scatter_mirror
from prismtrace.materials.storage import (
    get_material_color,
    get_material_kind,
    get_material_params,
)
from prismtrace.scene.intersection import SceneHitRecord, intersect_scene, intersect_scene_any
from prismtrace.scene.lights import num_lights, sample_light

logger = logging.getLogger(__name__)

# Pending-ray capacity; a depth-first walk of a binary ray tree of depth D
# never holds more than D + 1 pending rays
SHADE_STACK_SIZE = MAX_TRACE_DEPTH + 2

# Secondary rays carrying less weight than this are dropped
MIN_RAY_WEIGHT = 1e-4

MAX_SAMPLES_PER_PIXEL = MAX_SAMPLES_LEVEL * MAX_SAMPLES_LEVEL

# =============================================================================
# Integrator Settings
# =============================================================================

_max_depth = ti.field(dtype=ti.i32, shape=())
_ambient = ti.field(dtype=ti.f32, shape=())
_background_top = ti.Vector.field(3, dtype=ti.f32, shape=())
_background_bottom = ti.Vector.field(3, dtype=ti.f32, shape=())
_samples_per_pixel = ti.field(dtype=ti.i32, shape=())
_num_patterns = ti.field(dtype=ti.i32, shape=())
_sample_patterns = ti.Vector.field(2, dtype=ti.f32, shape=(MAX_PATTERNS, MAX_SAMPLES_PER_PIXEL))
_integrator_configured = ti.field(dtype=ti.i32, shape=())


def configure(settings: RenderSettings) -> MultiJitteredSampler:
    """Load render settings and the sample pattern table onto the device.

    Args:
        settings: Validated render settings.

    Returns:
        The sampler whose patterns were uploaded.
    """
    sampler = MultiJitteredSampler(
        settings.samples_level, seed=settings.seed, num_patterns=settings.num_patterns
    )
    table = np.zeros((MAX_PATTERNS, MAX_SAMPLES_PER_PIXEL, 2), dtype=np.float32)
    table[: sampler.num_patterns, : sampler.samples_per_pixel] = sampler.patterns
    _sample_patterns.from_numpy(table)

    _samples_per_pixel[None] = sampler.samples_per_pixel
    _num_patterns[None] = sampler.num_patterns
    _max_depth[None] = settings.max_depth
    _ambient[None] = settings.ambient
    _background_top[None] = settings.background_top
    _background_bottom[None] = settings.background_bottom
    _integrator_configured[None] = 1
    logger.debug("Configured integrator: %r, max_depth=%d", sampler, settings.max_depth)
    return sampler


def _check_configured() -> None:
    if _integrator_configured[None] == 0:
        raise RuntimeError("Integrator not configured. Call configure() first.")


# =============================================================================
# Render Target (Image Buffer)
# =============================================================================

# Maximum supported image dimensions (preallocated to avoid kernel recompilation)
MAX_IMAGE_WIDTH = 2048
MAX_IMAGE_HEIGHT = 2048

_image_width = ti.field(dtype=ti.i32, shape=())
_image_height = ti.field(dtype=ti.i32, shape=())

# Final pixel colors, indexed [x, y] with y = 0 at the bottom
_color_buffer = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))

_render_target_initialized = ti.field(dtype=ti.i32, shape=())


def setup_render_target(width: int, height: int) -> None:
    """Set the active image size and clear the color buffer.

    Raises:
        ValueError: If dimensions are not positive or exceed the maximum.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Image dimensions must be positive, got {width}x{height}")
    if width > MAX_IMAGE_WIDTH or height > MAX_IMAGE_HEIGHT:
        raise ValueError(
            f"Image dimensions ({width}x{height}) exceed maximum supported "
            f"({MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT})"
        )

    _image_width[None] = width
    _image_height[None] = height
    _render_target_initialized[None] = 1
    clear_render_target()


def clear_render_target() -> None:
    """Clear the color buffer to black."""
    _color_buffer.fill(0.0)


def reset_integrator() -> None:
    """Forget the render target and settings so rendering requires setup again."""
    _integrator_configured[None] = 0
    _render_target_initialized[None] = 0
    _image_width[None] = 0
    _image_height[None] = 0
    clear_render_target()


def get_image_dimensions() -> tuple[int, int]:
    """Get the current render target dimensions as (width, height)."""
    return int(_image_width[None]), int(_image_height[None])


def _check_render_target_initialized() -> None:
    if _render_target_initialized[None] == 0:
        raise RuntimeError("Render target not set up. Call setup_render_target() first.")


# =============================================================================
# Shading
# =============================================================================


@ti.func
def _background(direction: vec3) -> vec3:
    t = 0.5 * (tm.normalize(direction).y + 1.0)
    return (1.0 - t) * _background_bottom[None] + t * _background_top[None]


@ti.func
def shade_direct(rec: SceneHitRecord, incident: vec3) -> vec3:
    """Direct illumination of a diffuse hit from every scene light.

    Each light is tested with a shadow ray from the hit point, offset along
    the normal, toward the light. Any hit closer than the light occludes it.

    Args:
        rec: The diffuse surface hit.
        incident: Direction of the ray that found the hit.

    Returns:
        Ambient term plus the sum of unoccluded light contributions.
    """
    albedo = get_material_color(rec.material_id)
    params = get_material_params(rec.material_id)
    result = _ambient[None] * albedo

    to_viewer = -tm.normalize(incident)
    shadow_origin = offset_ray_origin(rec.point, rec.normal, rec.normal)

    for light in range(num_lights[None]):
        to_light, distance, radiance = sample_light(light, rec.point)
        if tm.dot(rec.normal, to_light) > 0.0:
            shadow_ray = Ray(origin=shadow_origin, direction=to_light)
            if intersect_scene_any(shadow_ray, T_MIN, distance - T_MIN) == 0:
                response = eval_diffuse(
                    albedo, params[0], params[1], params[2], rec.normal, to_light, to_viewer
                )
                result += radiance * response

    return result


@ti.func
def trace(origin: vec3, direction: vec3):
    """Radiance arriving along a ray, following specular bounces.

    Args:
        origin: Ray origin.
        direction: Ray direction (normalized).

    Returns:
        Tuple of (color, traversals) where traversals counts the closest-hit
        scene queries made (shadow queries are not counted).
    """
    color = vec3(0.0, 0.0, 0.0)
    traversals = 0
    max_depth = _max_depth[None]

    stack_origin = ti.Matrix.zero(ti.f32, SHADE_STACK_SIZE, 3)
    stack_direction = ti.Matrix.zero(ti.f32, SHADE_STACK_SIZE, 3)
    stack_weight = ti.Matrix.zero(ti.f32, SHADE_STACK_SIZE, 3)
    stack_depth = ti.Vector.zero(ti.i32, SHADE_STACK_SIZE)
    for c in ti.static(range(3)):
        stack_origin[0, c] = origin[c]
        stack_direction[0, c] = direction[c]
        stack_weight[0, c] = 1.0
    stack_size = 1

    while stack_size > 0:
        stack_size -= 1
        ray_origin = vec3(0.0, 0.0, 0.0)
        ray_direction = vec3(0.0, 0.0, 0.0)
        weight = vec3(0.0, 0.0, 0.0)
        for c in ti.static(range(3)):
            ray_origin[c] = stack_origin[stack_size, c]
            ray_direction[c] = stack_direction[stack_size, c]
            weight[c] = stack_weight[stack_size, c]
        depth = stack_depth[stack_size]

        rec = intersect_scene(Ray(origin=ray_origin, direction=ray_direction), T_MIN, T_MAX)
        traversals += 1

        # Up to two secondary rays spawned by this hit
        child_count = 0
        child_origin = ti.Matrix.zero(ti.f32, 2, 3)
        child_direction = ti.Matrix.zero(ti.f32, 2, 3)
        child_weight = ti.Matrix.zero(ti.f32, 2, 3)

        if rec.hit == 0:
            color += weight * _background(ray_direction)
        else:
            kind = get_material_kind(rec.material_id)
            surface_color = get_material_color(rec.material_id)

            if kind == int(MaterialKind.EMISSIVE):
                color += weight * surface_color
            elif kind == int(MaterialKind.DIFFUSE):
                color += weight * shade_direct(rec, ray_direction)
            elif depth < max_depth:
                if kind == int(MaterialKind.MIRROR):
                    reflected, attenuation = scatter_mirror(
                        surface_color, ray_direction, rec.normal
                    )
                    new_origin = offset_ray_origin(rec.point, rec.normal, reflected)
                    for c in ti.static(range(3)):
                        child_origin[0, c] = new_origin[c]
                        child_direction[0, c] = reflected[c]
                        child_weight[0, c] = weight[c] * attenuation[c]
                    child_count = 1
                elif kind == int(MaterialKind.DIELECTRIC):
                    ior = get_material_params(rec.material_id)[0]
                    reflected, reflected_weight, refracted, refracted_weight, did_refract = (
                        split_dielectric(
                            ior, surface_color, ray_direction, rec.normal, rec.front_face
                        )
                    )
                    reflect_origin = offset_ray_origin(rec.point, rec.normal, reflected)
                    refract_origin = offset_ray_origin(rec.point, rec.normal, refracted)
                    for c in ti.static(range(3)):
                        child_origin[0, c] = reflect_origin[c]
                        child_direction[0, c] = reflected[c]
                        child_weight[0, c] = weight[c] * reflected_weight[c]
                        child_origin[1, c] = refract_origin[c]
                        child_direction[1, c] = refracted[c]
                        child_weight[1, c] = weight[c] * refracted_weight[c]
                    child_count = 1 + did_refract

        for k in ti.static(range(2)):
            if k < child_count and stack_size < SHADE_STACK_SIZE:
                strongest = ti.max(
                    child_weight[k, 0], ti.max(child_weight[k, 1], child_weight[k, 2])
                )
                if strongest > MIN_RAY_WEIGHT:
                    for c in ti.static(range(3)):
                        stack_origin[stack_size, c] = child_origin[k, c]
                        stack_direction[stack_size, c] = child_direction[k, c]
                        stack_weight[stack_size, c] = child_weight[k, c]
                    stack_depth[stack_size] = depth + 1
                    stack_size += 1

    return color, traversals


# =============================================================================
# Rendering Kernels
# =============================================================================


@ti.func
def render_pixel(pixel_x: ti.i32, pixel_y: ti.i32, width: ti.i32, height: ti.i32) -> vec3:
    """Average the radiance of all samples of one pixel, clamped to [0, 1]."""
    samples = _samples_per_pixel[None]
    num_patterns = _num_patterns[None]
    stride = width
    if width % num_patterns == 0:
        stride = width + 1
    pattern = (pixel_y * stride + pixel_x) % num_patterns

    total = vec3(0.0, 0.0, 0.0)
    for s in range(samples):
        ray = generate_ray(pixel_x, pixel_y, _sample_patterns[pattern, s], width, height)
        radiance, traversals = trace(ray.origin, ray.direction)
        total += radiance

    pixel = total / ti.cast(samples, ti.f32)

    # NaN/Inf from degenerate numerics would poison the image
    for c in ti.static(range(3)):
        if tm.isnan(pixel[c]) or tm.isinf(pixel[c]):
            pixel[c] = 0.0

    return tm.clamp(pixel, 0.0, 1.0)


@ti.kernel
def _render_rows(row_start: ti.i32, row_end: ti.i32, width: ti.i32, height: ti.i32):
    for i, j in ti.ndrange(width, (row_start, row_end)):
        _color_buffer[i, j] = render_pixel(i, j, width, height)


_trace_color = ti.Vector.field(3, dtype=ti.f32, shape=())
_trace_traversals = ti.field(dtype=ti.i32, shape=())


@ti.kernel
def _trace_kernel(ox: ti.f32, oy: ti.f32, oz: ti.f32, dx: ti.f32, dy: ti.f32, dz: ti.f32):
    color, traversals = trace(vec3(ox, oy, oz), tm.normalize(vec3(dx, dy, dz)))
    _trace_color[None] = color
    _trace_traversals[None] = traversals


# =============================================================================
# Public Rendering API
# =============================================================================


def render_rows(row_start: int, row_end: int) -> None:
    """Render image rows [row_start, row_end), counted from the bottom.

    Raises:
        RuntimeError: If the render target, integrator or camera is not set up.
        ValueError: If the row range is outside the image.
    """
    _check_render_target_initialized()
    _check_configured()
    if not is_camera_ready():
        raise RuntimeError("No camera set up. Call setup_camera() or build a scene with a camera.")

    width, height = get_image_dimensions()
    if not 0 <= row_start <= row_end <= height:
        raise ValueError(f"Invalid row range [{row_start}, {row_end}) for height {height}")
    if row_start < row_end:
        _render_rows(row_start, row_end, width, height)


def render_image() -> None:
    """Render every row of the image in one kernel launch."""
    _, height = get_image_dimensions()
    render_rows(0, height)


def trace_ray(
    origin: tuple[float, float, float],
    direction: tuple[float, float, float],
) -> tuple[tuple[float, float, float], int]:
    """Shade a single ray from Python.

    Returns:
        Tuple of (color, traversals), color unclamped.

    Raises:
        RuntimeError: If the integrator has not been configured.
    """
    _check_configured()
    _trace_kernel(*origin, *direction)
    color = _trace_color[None]
    return (float(color[0]), float(color[1]), float(color[2])), int(_trace_traversals[None])


def get_normalized_image_numpy() -> npt.NDArray[np.float32]:
    """Get the rendered image as a NumPy array.

    Returns:
        Array of shape (height, width, 3), values in [0, 1], top row first.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()
    width, height = get_image_dimensions()

    image = _color_buffer.to_numpy()[:width, :height, :]

    # (width, height, 3) -> (height, width, 3), then bottom-origin -> top-origin
    image = np.flipud(np.transpose(image, (1, 0, 2)))
    return np.clip(image, 0.0, 1.0).astype(np.float32)
