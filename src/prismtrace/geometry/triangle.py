"""Triangle primitive with Moller-Trumbore intersection.

The outward normal is normalize(cross(v1 - v0, v2 - v0)), so counter-clockwise
winding seen from the outside gives an outward-facing normal. Hits report the
barycentric coordinates (u, v) of the hit point, weighting v1 and v2
respectively; v0 gets 1 - u - v.
"""

from dataclasses import dataclass

import numpy as np
import taichi as ti
import taichi.math as tm

from prismtrace.core.ray import Ray, vec3
from prismtrace.errors import SceneValidationError
from prismtrace.geometry.aabb import AABB, check_finite
from prismtrace.geometry.hit_record import HitRecord, orient_normal

# Determinant threshold below which the ray is treated as parallel
DETERMINANT_EPSILON = 1e-9

# Triangles with smaller area are rejected as degenerate. A unit ray hitting
# head-on gives |det| = 2 * area, so accepted triangles stay two orders of
# magnitude above the parallel threshold.
MIN_TRIANGLE_AREA = 50.0 * DETERMINANT_EPSILON


@dataclass(frozen=True)
class Triangle:
    """A triangle given by three vertices.

    Attributes:
        v0: First vertex.
        v1: Second vertex.
        v2: Third vertex.
        material_id: Index of the material shared by this triangle.
    """

    v0: tuple[float, float, float]
    v1: tuple[float, float, float]
    v2: tuple[float, float, float]
    material_id: int = 0

    def __post_init__(self) -> None:
        check_finite("Triangle v0", self.v0)
        check_finite("Triangle v1", self.v1)
        check_finite("Triangle v2", self.v2)
        if self.area() < MIN_TRIANGLE_AREA:
            raise SceneValidationError(
                f"Degenerate triangle with zero area: {self.v0}, {self.v1}, {self.v2}"
            )

    def _vertices(self) -> np.ndarray:
        return np.array([self.v0, self.v1, self.v2], dtype=np.float64)

    def area(self) -> float:
        """Surface area of the triangle."""
        v = self._vertices()
        return 0.5 * float(np.linalg.norm(np.cross(v[1] - v[0], v[2] - v[0])))

    def normal(self) -> np.ndarray:
        """Unit outward normal."""
        v = self._vertices()
        n = np.cross(v[1] - v[0], v[2] - v[0])
        return n / np.linalg.norm(n)

    def bounds(self) -> AABB:
        """Axis-aligned box enclosing the three vertices."""
        v = self._vertices()
        return AABB(v.min(axis=0), v.max(axis=0))


@ti.func
def hit_triangle(
    ray: Ray, v0: vec3, v1: vec3, v2: vec3, t_min: ti.f32, t_max: ti.f32
) -> HitRecord:
    """Test for ray-triangle intersection with the Moller-Trumbore algorithm.

    Solves origin + t*d = (1-u-v)*v0 + u*v1 + v*v2 with Cramer's rule,
    rejecting the ray when the determinant is near zero (parallel), when
    u < 0, v < 0 or u + v > 1 (outside), or when t leaves the interval.

    Args:
        ray: The ray to test.
        v0: First vertex.
        v1: Second vertex.
        v2: Third vertex.
        t_min: Exclusive lower bound of the valid interval.
        t_max: Exclusive upper bound of the valid interval.

    Returns:
        A HitRecord with barycentric coordinates in u and v.
    """
    edge1 = v1 - v0
    edge2 = v2 - v0
    p = tm.cross(ray.direction, edge2)
    det = tm.dot(edge1, p)

    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    is_front_face = 0
    bary_u = 0.0
    bary_v = 0.0

    if ti.abs(det) > DETERMINANT_EPSILON:
        inv_det = 1.0 / det
        s = ray.origin - v0
        u = inv_det * tm.dot(s, p)
        if u >= 0.0 and u <= 1.0:
            q = tm.cross(s, edge1)
            v = inv_det * tm.dot(ray.direction, q)
            if v >= 0.0 and u + v <= 1.0:
                t = inv_det * tm.dot(edge2, q)
                if t > t_min and t < t_max:
                    did_hit = 1
                    hit_t = t
                    hit_point = ray.origin + t * ray.direction
                    outward_normal = tm.normalize(tm.cross(edge1, edge2))
                    hit_normal, is_front_face = orient_normal(ray.direction, outward_normal)
                    bary_u = u
                    bary_v = v

    return HitRecord(
        hit=did_hit,
        t=hit_t,
        point=hit_point,
        normal=hit_normal,
        front_face=is_front_face,
        u=bary_u,
        v=bary_v,
    )
