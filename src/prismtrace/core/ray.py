"""Ray data structure and vector helpers used by the Taichi kernels.

Rays carry an origin and a direction. The valid parametric interval
[t_min, t_max] travels alongside the ray as explicit arguments to every
intersection routine, so one ray value can be reused with a shrinking t_max
during BVH traversal.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> ray = Ray(origin=ti.math.vec3(0.0), direction=ti.math.vec3(0.0, 0.0, -1.0))
    >>> point = ray_at(ray, 5.0)  # inside a kernel
"""

import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

# Offset applied to secondary ray origins along the surface normal
RAY_EPSILON = 1e-4

# Parametric interval used for primary and secondary rays
T_MIN = 1e-4
T_MAX = 1e10

# Stand-in for 1/0 in slab tests; finite so that 0 * inv never yields NaN
_INV_DIR_LIMIT = 1e30


@ti.dataclass
class Ray:
    """A ray with an origin point and direction vector.

    Attributes:
        origin: The starting point of the ray (vec3).
        direction: The direction vector of the ray (vec3). Primary and
            secondary rays are normalized; intersection routines do not
            require it.
    """

    origin: vec3
    direction: vec3


@ti.func
def ray_at(ray: Ray, t: ti.f32) -> vec3:
    """Compute the point along the ray at parameter t."""
    return ray.origin + t * ray.direction


@ti.func
def make_ray(origin: vec3, direction: vec3) -> Ray:
    """Create a ray from origin and direction inside a kernel."""
    return Ray(origin=origin, direction=direction)


@ti.func
def reflect(incident: vec3, normal: vec3) -> vec3:
    """Reflect an incident vector about a normal.

    Args:
        incident: The incoming direction vector (pointing toward the surface).
        normal: The surface normal (should be normalized).

    Returns:
        The reflected direction vector.
    """
    return incident - 2.0 * tm.dot(incident, normal) * normal


@ti.func
def refract(incident: vec3, normal: vec3, eta: ti.f32):
    """Refract an incident vector through a surface using Snell's law.

    Args:
        incident: The incoming direction vector (normalized).
        normal: The surface normal facing the incident ray (normalized).
        eta: Ratio of refractive indices (n_incident / n_transmitted).

    Returns:
        Tuple of (direction, refracted). When the discriminant of the
        refraction equation is negative (total internal reflection),
        refracted is 0 and direction is the zero vector.
    """
    cos_i = -tm.dot(incident, normal)
    sin2_t = eta * eta * (1.0 - cos_i * cos_i)
    result = vec3(0.0, 0.0, 0.0)
    refracted = 0
    if sin2_t <= 1.0:
        cos_t = ti.sqrt(1.0 - sin2_t)
        result = eta * incident + (eta * cos_i - cos_t) * normal
        refracted = 1
    return result, refracted


@ti.func
def schlick_fresnel(cosine: ti.f32, ref_idx: ti.f32) -> ti.f32:
    """Compute Fresnel reflectance using Schlick's approximation.

    Args:
        cosine: Cosine of the angle between incident direction and normal.
        ref_idx: Ratio of refractive indices.

    Returns:
        The approximate Fresnel reflectance coefficient in [0, 1].
    """
    r0 = ((1.0 - ref_idx) / (1.0 + ref_idx)) ** 2
    return r0 + (1.0 - r0) * ((1.0 - cosine) ** 5)


@ti.func
def offset_ray_origin(point: vec3, normal: vec3, direction: vec3) -> vec3:
    """Move a secondary ray origin off the surface it starts on.

    The offset goes to the side of the surface the new ray travels into:
    along the normal for reflected and shadow rays, against it for
    transmitted rays.
    """
    offset = RAY_EPSILON * normal
    if tm.dot(direction, normal) < 0.0:
        offset = -offset
    return point + offset


@ti.func
def safe_inverse(direction: vec3) -> vec3:
    """Componentwise 1 / direction, clamped to a large finite value near zero."""
    result = vec3(0.0, 0.0, 0.0)
    for c in ti.static(range(3)):
        d = direction[c]
        limit = ti.select(d >= 0.0, _INV_DIR_LIMIT, -_INV_DIR_LIMIT)
        result[c] = limit
        if ti.abs(d) > 1e-30:
            result[c] = tm.clamp(1.0 / d, -_INV_DIR_LIMIT, _INV_DIR_LIMIT)
    return result
