"""Infinite plane primitive.

Planes have no finite bounding box, so the scene keeps them out of the BVH
and tests them alongside it on every query.
"""

from dataclasses import dataclass

import numpy as np
import taichi as ti
import taichi.math as tm

from prismtrace.core.ray import Ray, vec3
from prismtrace.errors import SceneValidationError
from prismtrace.geometry.aabb import check_finite
from prismtrace.geometry.hit_record import HitRecord, orient_normal

# Rays whose direction is this close to parallel with the plane never hit it
PARALLEL_EPSILON = 1e-8


@dataclass(frozen=True)
class Plane:
    """A plane through a point with a given normal.

    Attributes:
        point: Any point on the plane.
        normal: Plane normal. Stored normalized; the outward side is the one
            it points to.
        material_id: Index of the material shared by this plane.
    """

    point: tuple[float, float, float]
    normal: tuple[float, float, float]
    material_id: int = 0

    def __post_init__(self) -> None:
        check_finite("Plane point", self.point)
        check_finite("Plane normal", self.normal)
        normal = np.asarray(self.normal, dtype=np.float64)
        length = float(np.linalg.norm(normal))
        if length < 1e-12:
            raise SceneValidationError("Plane normal must be non-zero")
        object.__setattr__(self, "normal", tuple(float(c) for c in normal / length))


@ti.func
def hit_plane(ray: Ray, point: vec3, normal: vec3, t_min: ti.f32, t_max: ti.f32) -> HitRecord:
    """Test for ray-plane intersection.

    Solves dot(origin + t * direction - point, normal) = 0 for t.

    Args:
        ray: The ray to test.
        point: A point on the plane.
        normal: Unit plane normal.
        t_min: Exclusive lower bound of the valid interval.
        t_max: Exclusive upper bound of the valid interval.

    Returns:
        A HitRecord. Near-parallel rays and roots outside the interval miss.
    """
    denom = tm.dot(normal, ray.direction)

    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    is_front_face = 0

    if ti.abs(denom) > PARALLEL_EPSILON:
        t = tm.dot(point - ray.origin, normal) / denom
        if t > t_min and t < t_max:
            did_hit = 1
            hit_t = t
            hit_point = ray.origin + t * ray.direction
            hit_normal, is_front_face = orient_normal(ray.direction, normal)

    return HitRecord(
        hit=did_hit,
        t=hit_t,
        point=hit_point,
        normal=hit_normal,
        front_face=is_front_face,
        u=0.0,
        v=0.0,
    )
