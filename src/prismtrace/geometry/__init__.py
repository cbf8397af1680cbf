"""Geometry module for primitives, bounding boxes and the BVH builder.

Components:
    hit_record: Per-primitive intersection record
    sphere: Sphere primitive with robust quadratic intersection
    plane: Unbounded plane primitive
    triangle: Triangle primitive with Moller-Trumbore intersection
    aabb: Axis-aligned boxes and the slab test
    bvh: Median-split BVH construction into a flat node arena

Each primitive module pairs a host-side frozen dataclass, validated on
construction, with a ``@ti.func`` intersection routine. None of these
modules allocate Taichi fields, so they are safe to import before ti.init.
"""

from .aabb import AABB, BOX_PADDING, hit_aabb
from .bvh import DEFAULT_LEAF_SIZE, FlatBVH, build_bvh
from .hit_record import HitRecord, make_miss_record
from .plane import Plane, hit_plane
from .sphere import Sphere, hit_sphere
from .triangle import Triangle, hit_triangle

__all__ = [
    "AABB",
    "BOX_PADDING",
    "DEFAULT_LEAF_SIZE",
    "FlatBVH",
    "HitRecord",
    "Plane",
    "Sphere",
    "Triangle",
    "build_bvh",
    "hit_aabb",
    "hit_plane",
    "hit_sphere",
    "hit_triangle",
    "make_miss_record",
]
