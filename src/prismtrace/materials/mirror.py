"""Perfect mirror material."""

from dataclasses import dataclass

import taichi as ti
import taichi.math as tm

from prismtrace.core.ray import reflect, vec3
from prismtrace.materials.base import MaterialKind, PackedMaterial, check_color


@dataclass(frozen=True)
class MirrorMaterial:
    """Specular reflector.

    Attributes:
        reflectance: Fraction of light reflected per channel, in [0, 1].
    """

    reflectance: tuple[float, float, float] = (1.0, 1.0, 1.0)

    kind = MaterialKind.MIRROR

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "reflectance", check_color("Mirror reflectance", self.reflectance)
        )

    def pack(self) -> PackedMaterial:
        return PackedMaterial(self.kind, self.reflectance, (0.0, 0.0, 0.0, 0.0))


@ti.func
def scatter_mirror(reflectance: vec3, incident_direction: vec3, normal: vec3):
    """Reflect a ray off a mirror.

    Args:
        reflectance: Mirror color.
        incident_direction: The incoming ray direction.
        normal: Unit normal facing the incoming ray.

    Returns:
        Tuple of (reflected_direction, attenuation). The direction is
        normalized.
    """
    direction = tm.normalize(reflect(incident_direction, normal))
    return direction, reflectance
