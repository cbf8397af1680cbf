"""Per-primitive hit record shared by the intersection routines."""

import taichi as ti
import taichi.math as tm

from prismtrace.core.ray import vec3


@ti.dataclass
class HitRecord:
    """Record of a ray-primitive intersection.

    Attributes:
        hit: 1 if the ray intersected the primitive, 0 on a miss.
        t: Ray parameter of the intersection. Only valid if hit == 1.
        point: World-space intersection point.
        normal: Unit surface normal oriented against the incoming ray.
        front_face: 1 if the ray struck the outward-facing side.
        u: First barycentric coordinate (triangles only, 0 otherwise).
        v: Second barycentric coordinate (triangles only, 0 otherwise).
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    front_face: ti.i32
    u: ti.f32
    v: ti.f32


@ti.func
def make_miss_record() -> HitRecord:
    """A HitRecord representing no intersection."""
    return HitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        front_face=0,
        u=0.0,
        v=0.0,
    )


@ti.func
def orient_normal(direction: vec3, outward_normal: vec3):
    """Flip an outward normal so it faces against the ray direction.

    Returns:
        Tuple of (normal, front_face).
    """
    normal = outward_normal
    front_face = 1
    if tm.dot(direction, outward_normal) > 0.0:
        normal = -outward_normal
        front_face = 0
    return normal, front_face
