"""Core module for rays, sampling and rendering.

Components:
    ray: Ray dataclass and vector helpers (reflect, refract, Fresnel)
    sampler: Correlated multi-jittered sample pattern tables
    integrator: Shading kernels, the render target and per-block rendering
    renderer: Renderer class driving row blocks with progress reporting

The integrator and renderer allocate Taichi fields and are NOT imported
here; import them explicitly after ti.init.
"""

from .ray import (
    RAY_EPSILON,
    T_MAX,
    T_MIN,
    Ray,
    make_ray,
    offset_ray_origin,
    ray_at,
    reflect,
    refract,
    safe_inverse,
    schlick_fresnel,
    vec3,
)
from .sampler import MultiJitteredSampler, generate_patterns, pattern_stride

__all__ = [
    "RAY_EPSILON",
    "T_MAX",
    "T_MIN",
    "MultiJitteredSampler",
    "Ray",
    "generate_patterns",
    "make_ray",
    "offset_ray_origin",
    "pattern_stride",
    "ray_at",
    "reflect",
    "refract",
    "safe_inverse",
    "schlick_fresnel",
    "vec3",
]
