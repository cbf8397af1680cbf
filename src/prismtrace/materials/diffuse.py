"""Diffuse material with an optional Blinn-Phong highlight.

A diffuse surface only responds to direct light: the integrator casts one
shadow ray per light and, for each unoccluded light, adds

    radiance * (kd * albedo * max(0, n.l) + ks * max(0, n.h)^shininess)

where l points to the light, h is the half vector between l and the
direction to the viewer, kd is the diffuse weight and ks the specular
weight. A global ambient term (ambient * albedo) is added once per hit.
"""

import math
from dataclasses import dataclass

import taichi as ti
import taichi.math as tm

from prismtrace.core.ray import vec3
from prismtrace.errors import SceneValidationError
from prismtrace.materials.base import MaterialKind, PackedMaterial, check_color


@dataclass(frozen=True)
class DiffuseMaterial:
    """Matte surface lit by direct illumination.

    Attributes:
        albedo: Surface color, components in [0, 1].
        diffuse_weight: Scale of the Lambertian term.
        specular_weight: Scale of the Blinn-Phong highlight (0 disables it).
        shininess: Blinn-Phong exponent.
    """

    albedo: tuple[float, float, float]
    diffuse_weight: float = 1.0
    specular_weight: float = 0.0
    shininess: float = 32.0

    kind = MaterialKind.DIFFUSE

    def __post_init__(self) -> None:
        object.__setattr__(self, "albedo", check_color("Diffuse albedo", self.albedo))
        for name in ("diffuse_weight", "specular_weight"):
            value = getattr(self, name)
            if not math.isfinite(value) or value < 0.0:
                raise SceneValidationError(f"{name} must be finite and >= 0, got {value}")
        if not math.isfinite(self.shininess) or self.shininess < 1.0:
            raise SceneValidationError(f"shininess must be >= 1, got {self.shininess}")

    def pack(self) -> PackedMaterial:
        return PackedMaterial(
            self.kind,
            self.albedo,
            (self.diffuse_weight, self.specular_weight, self.shininess, 0.0),
        )


@ti.func
def eval_diffuse(
    albedo: vec3,
    diffuse_weight: ti.f32,
    specular_weight: ti.f32,
    shininess: ti.f32,
    normal: vec3,
    to_light: vec3,
    to_viewer: vec3,
) -> vec3:
    """Response of a diffuse surface to one unit-radiance light.

    Args:
        albedo: Surface color.
        diffuse_weight: Scale of the Lambertian term.
        specular_weight: Scale of the Blinn-Phong term.
        shininess: Blinn-Phong exponent.
        normal: Unit normal facing the viewer.
        to_light: Unit direction from the surface to the light.
        to_viewer: Unit direction from the surface to the viewer.

    Returns:
        The reflected color, never negative.
    """
    cos_theta = ti.max(tm.dot(normal, to_light), 0.0)
    result = diffuse_weight * cos_theta * albedo
    if specular_weight > 0.0 and cos_theta > 0.0:
        half = tm.normalize(to_light + to_viewer)
        cos_h = ti.max(tm.dot(normal, half), 0.0)
        result += vec3(specular_weight * cos_h**shininess)
    return result
