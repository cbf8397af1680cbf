"""Point and directional lights.

Lights only feed direct illumination of diffuse surfaces. Every light is
iterated for every diffuse hit, so the order of the list never changes the
result beyond floating-point summation order.
"""

import math
from collections.abc import Sequence
from dataclasses import dataclass
from enum import IntEnum

import numpy as np
import taichi as ti
import taichi.math as tm

from prismtrace.core.ray import T_MAX, vec3
from prismtrace.errors import SceneValidationError
from prismtrace.geometry.aabb import check_finite
from prismtrace.materials.base import check_color

MAX_LIGHTS = 64


class LightKind(IntEnum):
    POINT = 0
    DIRECTIONAL = 1


def _check_intensity(intensity: float) -> None:
    if not math.isfinite(intensity) or intensity < 0.0:
        raise SceneValidationError(f"Light intensity must be finite and >= 0, got {intensity}")


@dataclass(frozen=True)
class PointLight:
    """Light emitted from a single point, without distance falloff.

    Attributes:
        position: Light position in world space.
        color: Light color, components >= 0.
        intensity: Scalar multiplier applied to color.
    """

    position: tuple[float, float, float]
    color: tuple[float, float, float] = (1.0, 1.0, 1.0)
    intensity: float = 1.0

    kind = LightKind.POINT

    def __post_init__(self) -> None:
        check_finite("Light position", self.position)
        object.__setattr__(self, "color", check_color("Light color", self.color, upper=None))
        _check_intensity(self.intensity)

    def vector(self) -> tuple[float, float, float]:
        return tuple(float(c) for c in self.position)


@dataclass(frozen=True)
class DirectionalLight:
    """Light arriving from infinitely far away along a fixed direction.

    Attributes:
        direction: Direction the light travels in (stored normalized).
        color: Light color, components >= 0.
        intensity: Scalar multiplier applied to color.
    """

    direction: tuple[float, float, float]
    color: tuple[float, float, float] = (1.0, 1.0, 1.0)
    intensity: float = 1.0

    kind = LightKind.DIRECTIONAL

    def __post_init__(self) -> None:
        check_finite("Light direction", self.direction)
        direction = np.asarray(self.direction, dtype=np.float64)
        length = float(np.linalg.norm(direction))
        if length < 1e-12:
            raise SceneValidationError("Light direction must be non-zero")
        object.__setattr__(self, "direction", tuple(float(c) for c in direction / length))
        object.__setattr__(self, "color", check_color("Light color", self.color, upper=None))
        _check_intensity(self.intensity)

    def vector(self) -> tuple[float, float, float]:
        return self.direction


Light = PointLight | DirectionalLight


# =============================================================================
# Taichi Fields for Light Storage
# =============================================================================

light_kinds = ti.field(dtype=ti.i32, shape=MAX_LIGHTS)
light_vectors = ti.Vector.field(3, dtype=ti.f32, shape=MAX_LIGHTS)
light_radiance = ti.Vector.field(3, dtype=ti.f32, shape=MAX_LIGHTS)
num_lights = ti.field(dtype=ti.i32, shape=())


def upload_lights(lights: Sequence[Light]) -> None:
    """Replace the light table.

    Raises:
        RuntimeError: If there are more than MAX_LIGHTS lights.
    """
    if len(lights) > MAX_LIGHTS:
        raise RuntimeError(f"Maximum number of lights ({MAX_LIGHTS}) exceeded: {len(lights)}")

    kinds = np.zeros(MAX_LIGHTS, dtype=np.int32)
    vectors = np.zeros((MAX_LIGHTS, 3), dtype=np.float32)
    radiance = np.zeros((MAX_LIGHTS, 3), dtype=np.float32)
    for i, light in enumerate(lights):
        kinds[i] = int(light.kind)
        vectors[i] = light.vector()
        radiance[i] = np.asarray(light.color) * light.intensity

    light_kinds.from_numpy(kinds)
    light_vectors.from_numpy(vectors)
    light_radiance.from_numpy(radiance)
    num_lights[None] = len(lights)


def clear_lights() -> None:
    num_lights[None] = 0


def get_light_count() -> int:
    return num_lights[None]


@ti.func
def sample_light(index: ti.i32, point: vec3):
    """Direction and distance from a surface point to a light.

    Returns:
        Tuple of (to_light, distance, radiance). to_light is normalized;
        distance is T_MAX for directional lights.
    """
    to_light = -light_vectors[index]
    distance = T_MAX
    if light_kinds[index] == int(LightKind.POINT):
        offset = light_vectors[index] - point
        distance = tm.length(offset)
        to_light = offset / ti.max(distance, 1e-12)
    return to_light, distance, light_radiance[index]
