"""Sphere primitive with robust ray-sphere intersection.

The intersection uses the robust quadratic formulation from Ray Tracing Gems
to avoid catastrophic cancellation when b^2 is nearly equal to 4ac.

Example:
    >>> sphere = Sphere(center=(0.0, 0.0, -5.0), radius=1.0, material_id=0)
    >>> sphere.bounds().minimum
    array([-1., -1., -6.])
"""

import math
from dataclasses import dataclass

import numpy as np
import taichi as ti
import taichi.math as tm

from prismtrace.core.ray import Ray, vec3
from prismtrace.errors import SceneValidationError
from prismtrace.geometry.aabb import AABB, check_finite
from prismtrace.geometry.hit_record import HitRecord, orient_normal


@dataclass(frozen=True)
class Sphere:
    """A sphere defined by center point and radius.

    Attributes:
        center: Center of the sphere in world space.
        radius: Radius of the sphere, strictly positive.
        material_id: Index of the material shared by this sphere.
    """

    center: tuple[float, float, float]
    radius: float
    material_id: int = 0

    def __post_init__(self) -> None:
        check_finite("Sphere center", self.center)
        if not math.isfinite(self.radius) or self.radius <= 0.0:
            raise SceneValidationError(f"Sphere radius must be positive, got {self.radius}")

    def bounds(self) -> AABB:
        """Axis-aligned box enclosing the sphere."""
        center = np.asarray(self.center, dtype=np.float64)
        return AABB(center - self.radius, center + self.radius)


@ti.func
def _solve_quadratic_robust(h: ti.f32, a: ti.f32, c: ti.f32, sqrt_d: ti.f32):
    """Solve a*t^2 + 2*h*t + c = 0 using a numerically stable method.

    Returns:
        Tuple of (t0, t1) where t0 <= t1.
    """
    # q = -(h + sign(h) * sqrt(discriminant)) keeps both roots well conditioned
    sign_h = ti.select(h < 0.0, -1.0, 1.0)
    q = -(h + sign_h * sqrt_d)

    t0 = 0.0
    t1 = 0.0

    if ti.abs(q) < 1e-10:
        t0 = (-h - sqrt_d) / a
        t1 = (-h + sqrt_d) / a
    else:
        t0 = q / a
        t1 = c / q

    if t0 > t1:
        temp = t0
        t0 = t1
        t1 = temp

    return t0, t1


@ti.func
def hit_sphere(ray: Ray, center: vec3, radius: ti.f32, t_min: ti.f32, t_max: ti.f32) -> HitRecord:
    """Test for ray-sphere intersection.

    Substituting the ray into |p - center|^2 = radius^2 gives
        a*t^2 + 2*h*t + c = 0
    with a = d.d, h = d.oc, c = oc.oc - r^2 and oc = origin - center. Of the
    two roots the smaller one inside (t_min, t_max) is reported.

    Args:
        ray: The ray to test. The direction need not be normalized.
        center: Sphere center.
        radius: Sphere radius.
        t_min: Exclusive lower bound of the valid interval.
        t_max: Exclusive upper bound of the valid interval.

    Returns:
        A HitRecord whose normal is the unit outward normal flipped to face
        the ray. Check the hit field to see whether an intersection occurred.
    """
    oc = ray.origin - center

    a = tm.dot(ray.direction, ray.direction)
    h = tm.dot(ray.direction, oc)
    c = tm.dot(oc, oc) - radius * radius

    discriminant = h * h - a * c

    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    is_front_face = 0

    if discriminant >= 0.0:
        sqrt_d = ti.sqrt(discriminant)
        t0, t1 = _solve_quadratic_robust(h, a, c, sqrt_d)

        t = t0
        valid = (t > t_min) and (t < t_max)

        if not valid:
            t = t1
            valid = (t > t_min) and (t < t_max)

        if valid:
            did_hit = 1
            hit_t = t
            hit_point = ray.origin + t * ray.direction
            outward_normal = (hit_point - center) / radius
            hit_normal, is_front_face = orient_normal(ray.direction, outward_normal)

    return HitRecord(
        hit=did_hit,
        t=hit_t,
        point=hit_point,
        normal=hit_normal,
        front_face=is_front_face,
        u=0.0,
        v=0.0,
    )
