"""Dielectric (glass/water) material.

Key physics:
    - Snell's law for refraction: n1 * sin(theta1) = n2 * sin(theta2)
    - Schlick's approximation for Fresnel reflectance
    - Total internal reflection when sin(theta_t) > 1

Both the reflected and the refracted ray are traced. For Schlick
reflectance F the reflected ray carries weight F and the refracted ray
carries (1 - F) * transmittance, so a clear dielectric neither gains nor
loses energy at the interface. Under total internal reflection the
reflected ray carries the full weight and no refracted ray is spawned.

Example:
    >>> glass = DielectricMaterial(ior=1.5, transmittance=(0.9, 1.0, 0.9))
"""

import math
from dataclasses import dataclass

import taichi as ti
import taichi.math as tm

from prismtrace.core.ray import reflect, refract, schlick_fresnel, vec3
from prismtrace.errors import SceneValidationError
from prismtrace.materials.base import MaterialKind, PackedMaterial, check_color


@dataclass(frozen=True)
class DielectricMaterial:
    """Transparent refractive material.

    Attributes:
        ior: Index of refraction. Common values: water 1.33, glass 1.5,
            diamond 2.4. Must be >= 1.
        transmittance: Per-channel tint applied to refracted light, in [0, 1].
    """

    ior: float = 1.5
    transmittance: tuple[float, float, float] = (1.0, 1.0, 1.0)

    kind = MaterialKind.DIELECTRIC

    def __post_init__(self) -> None:
        if not math.isfinite(self.ior) or self.ior < 1.0:
            raise SceneValidationError(f"Index of refraction must be >= 1.0, got {self.ior}")
        object.__setattr__(
            self, "transmittance", check_color("Dielectric transmittance", self.transmittance)
        )

    def pack(self) -> PackedMaterial:
        return PackedMaterial(self.kind, self.transmittance, (self.ior, 0.0, 0.0, 0.0))


@ti.func
def split_dielectric(
    ior: ti.f32,
    transmittance: vec3,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
):
    """Split a ray hitting a dielectric into reflected and refracted parts.

    Args:
        ior: Index of refraction of the material.
        transmittance: Tint applied to the refracted part.
        incident_direction: The incoming ray direction.
        normal: Unit normal facing the incoming ray.
        front_face: 1 if the ray enters the material, 0 if it leaves.

    Returns:
        Tuple of (reflected_direction, reflected_weight, refracted_direction,
        refracted_weight, refracted). Directions are normalized. When
        refracted is 0 (total internal reflection) the refracted outputs are
        zero and reflected_weight is 1.
    """
    unit_direction = tm.normalize(incident_direction)

    # Entering: air to material. Leaving: material to air.
    eta = 1.0 / ior
    if front_face == 0:
        eta = ior

    cos_theta = tm.min(-tm.dot(unit_direction, normal), 1.0)
    reflected_direction = tm.normalize(reflect(unit_direction, normal))
    refracted_direction, refracted = refract(unit_direction, normal, eta)

    reflected_weight = vec3(1.0, 1.0, 1.0)
    refracted_weight = vec3(0.0, 0.0, 0.0)
    if refracted == 1:
        reflectance = schlick_fresnel(cos_theta, eta)
        reflected_weight = vec3(reflectance)
        refracted_weight = (1.0 - reflectance) * transmittance
        refracted_direction = tm.normalize(refracted_direction)

    return (
        reflected_direction,
        reflected_weight,
        refracted_direction,
        refracted_weight,
        refracted,
    )
