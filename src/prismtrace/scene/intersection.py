"""Primitive storage, BVH traversal and ray-scene queries.

Primitives are stored as a tagged variant in Structure-of-Arrays layout: one
kind column and three vec3 columns whose meaning depends on the kind.

    SPHERE:   a = center, radius column = radius
    PLANE:    a = point, b = unit normal
    TRIANGLE: a, b, c = v0, v1, v2

Bounded primitives (spheres, triangles) are reached through the BVH; planes
are unbounded and listed separately, tested on every query after the BVH.

Traversal keeps an explicit stack of pending node indices. A node whose box
the ray misses within [t_min, closest_t] is pruned, leaves test their
primitives against the shrinking closest_t, and interior nodes push the far
child first so the near child along the split axis is visited first.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from prismtrace.scene.manager import SceneManager
    >>> from prismtrace.scene.intersection import cast_ray
    >>> scene = SceneManager()
    >>> mat = scene.add_diffuse_material((0.8, 0.8, 0.8))
    >>> scene.add_sphere((0, 0, -5), 1.0, mat)
    >>> scene.build()
    >>> cast_ray((0, 0, 0), (0, 0, -1)).t
    4.0
"""

from dataclasses import dataclass
from enum import IntEnum

import numpy as np
import numpy.typing as npt
import taichi as ti

from prismtrace.core.ray import T_MAX, T_MIN, Ray, safe_inverse, vec3
from prismtrace.geometry.aabb import hit_aabb
from prismtrace.geometry.bvh import FlatBVH
from prismtrace.geometry.hit_record import HitRecord, make_miss_record
from prismtrace.geometry.plane import hit_plane
from prismtrace.geometry.sphere import hit_sphere
from prismtrace.geometry.triangle import hit_triangle

MAX_PRIMITIVES = 1 << 16
MAX_BVH_NODES = 2 * MAX_PRIMITIVES
MAX_UNBOUNDED = 64

# Pending-node capacity of the traversal stack; BVH depth is capped below it
BVH_STACK_SIZE = 32


class PrimitiveKind(IntEnum):
    """Closed set of primitive shapes dispatched on by intersect_primitive."""

    SPHERE = 0
    PLANE = 1
    TRIANGLE = 2


@ti.dataclass
class SceneHitRecord:
    """Closest intersection of a ray with the scene.

    Attributes:
        hit: 1 if anything was hit.
        t: Ray parameter of the hit.
        point: World-space hit point.
        normal: Unit normal oriented against the incoming ray.
        front_face: 1 if the outward-facing side was struck.
        u: Barycentric u (triangles only).
        v: Barycentric v (triangles only).
        primitive_id: Index of the hit primitive (-1 on a miss).
        material_id: Material of the hit primitive (-1 on a miss).
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    front_face: ti.i32
    u: ti.f32
    v: ti.f32
    primitive_id: ti.i32
    material_id: ti.i32


# =============================================================================
# Taichi Fields for Scene Storage
# =============================================================================

primitive_kinds = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
primitive_a = ti.Vector.field(3, dtype=ti.f32, shape=MAX_PRIMITIVES)
primitive_b = ti.Vector.field(3, dtype=ti.f32, shape=MAX_PRIMITIVES)
primitive_c = ti.Vector.field(3, dtype=ti.f32, shape=MAX_PRIMITIVES)
primitive_radii = ti.field(dtype=ti.f32, shape=MAX_PRIMITIVES)
primitive_materials = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
num_primitives = ti.field(dtype=ti.i32, shape=())

bvh_box_min = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BVH_NODES)
bvh_box_max = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BVH_NODES)
bvh_left = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_right = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_axis = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_start = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_count = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_order = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
num_bvh_nodes = ti.field(dtype=ti.i32, shape=())

unbounded_primitives = ti.field(dtype=ti.i32, shape=MAX_UNBOUNDED)
num_unbounded = ti.field(dtype=ti.i32, shape=())


def _padded(values: npt.ArrayLike, capacity: int, dtype: type, width: int = 0) -> np.ndarray:
    shape = (capacity, width) if width else (capacity,)
    out = np.zeros(shape, dtype=dtype)
    values = np.asarray(values, dtype=dtype)
    if values.size:
        out[: values.shape[0]] = values
    return out


def upload_primitives(
    kinds: npt.ArrayLike,
    a: npt.ArrayLike,
    b: npt.ArrayLike,
    c: npt.ArrayLike,
    radii: npt.ArrayLike,
    materials: npt.ArrayLike,
) -> None:
    """Replace the primitive table.

    Args:
        kinds: PrimitiveKind per primitive, shape (n,).
        a: First vec3 column, shape (n, 3).
        b: Second vec3 column, shape (n, 3).
        c: Third vec3 column, shape (n, 3).
        radii: Sphere radii (ignored for other kinds), shape (n,).
        materials: Material id per primitive, shape (n,).

    Raises:
        RuntimeError: If n exceeds MAX_PRIMITIVES.
    """
    count = len(kinds)
    if count > MAX_PRIMITIVES:
        raise RuntimeError(f"Maximum number of primitives ({MAX_PRIMITIVES}) exceeded: {count}")

    primitive_kinds.from_numpy(_padded(kinds, MAX_PRIMITIVES, np.int32))
    primitive_a.from_numpy(_padded(a, MAX_PRIMITIVES, np.float32, 3))
    primitive_b.from_numpy(_padded(b, MAX_PRIMITIVES, np.float32, 3))
    primitive_c.from_numpy(_padded(c, MAX_PRIMITIVES, np.float32, 3))
    primitive_radii.from_numpy(_padded(radii, MAX_PRIMITIVES, np.float32))
    primitive_materials.from_numpy(_padded(materials, MAX_PRIMITIVES, np.int32))
    num_primitives[None] = count


def upload_bvh(bvh: FlatBVH, bounded_ids: npt.ArrayLike, unbounded_ids: npt.ArrayLike) -> None:
    """Upload a flattened BVH and the list of unbounded primitives.

    Args:
        bvh: Tree built over the bounded primitives. Its ``order`` indexes
            into bounded_ids.
        bounded_ids: Primitive ids of the bounded primitives, in the order
            their boxes were given to build_bvh.
        unbounded_ids: Primitive ids tested outside the BVH.

    Raises:
        RuntimeError: If the tree or the unbounded list exceeds capacity.
    """
    if bvh.node_count > MAX_BVH_NODES:
        raise RuntimeError(f"Maximum number of BVH nodes ({MAX_BVH_NODES}) exceeded")
    if bvh.depth >= BVH_STACK_SIZE:
        raise RuntimeError(f"BVH depth {bvh.depth} exceeds traversal stack size {BVH_STACK_SIZE}")
    unbounded_ids = np.asarray(unbounded_ids, dtype=np.int32)
    if unbounded_ids.shape[0] > MAX_UNBOUNDED:
        raise RuntimeError(f"Maximum number of planes ({MAX_UNBOUNDED}) exceeded")

    bounded_ids = np.asarray(bounded_ids, dtype=np.int32)
    order = bounded_ids[bvh.order] if bvh.order.size else bvh.order

    bvh_box_min.from_numpy(_padded(bvh.box_min, MAX_BVH_NODES, np.float32, 3))
    bvh_box_max.from_numpy(_padded(bvh.box_max, MAX_BVH_NODES, np.float32, 3))
    bvh_left.from_numpy(_padded(bvh.left, MAX_BVH_NODES, np.int32))
    bvh_right.from_numpy(_padded(bvh.right, MAX_BVH_NODES, np.int32))
    bvh_axis.from_numpy(_padded(bvh.axis, MAX_BVH_NODES, np.int32))
    bvh_start.from_numpy(_padded(bvh.start, MAX_BVH_NODES, np.int32))
    bvh_count.from_numpy(_padded(bvh.count, MAX_BVH_NODES, np.int32))
    bvh_order.from_numpy(_padded(order, MAX_PRIMITIVES, np.int32))
    num_bvh_nodes[None] = bvh.node_count

    unbounded_primitives.from_numpy(_padded(unbounded_ids, MAX_UNBOUNDED, np.int32))
    num_unbounded[None] = unbounded_ids.shape[0]


def clear_scene() -> None:
    """Remove all primitives and the BVH."""
    num_primitives[None] = 0
    num_bvh_nodes[None] = 0
    num_unbounded[None] = 0


def get_primitive_count() -> int:
    return num_primitives[None]


def get_bvh_node_count() -> int:
    return num_bvh_nodes[None]


# =============================================================================
# Intersection Functions
# =============================================================================


@ti.func
def _make_miss_record() -> SceneHitRecord:
    return SceneHitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        front_face=0,
        u=0.0,
        v=0.0,
        primitive_id=-1,
        material_id=-1,
    )


@ti.func
def intersect_primitive(index: ti.i32, ray: Ray, t_min: ti.f32, t_max: ti.f32) -> SceneHitRecord:
    """Intersect a ray with one primitive, dispatching on its kind."""
    kind = primitive_kinds[index]
    rec = make_miss_record()

    if kind == int(PrimitiveKind.SPHERE):
        rec = hit_sphere(ray, primitive_a[index], primitive_radii[index], t_min, t_max)
    elif kind == int(PrimitiveKind.PLANE):
        rec = hit_plane(ray, primitive_a[index], primitive_b[index], t_min, t_max)
    elif kind == int(PrimitiveKind.TRIANGLE):
        rec = hit_triangle(
            ray, primitive_a[index], primitive_b[index], primitive_c[index], t_min, t_max
        )

    return _to_scene_record(rec, index)


@ti.func
def _to_scene_record(rec: HitRecord, index: ti.i32) -> SceneHitRecord:
    primitive_id = -1
    material_id = -1
    if rec.hit == 1:
        primitive_id = index
        material_id = primitive_materials[index]
    return SceneHitRecord(
        hit=rec.hit,
        t=rec.t,
        point=rec.point,
        normal=rec.normal,
        front_face=rec.front_face,
        u=rec.u,
        v=rec.v,
        primitive_id=primitive_id,
        material_id=material_id,
    )


@ti.func
def _axis_component(v: vec3, axis: ti.i32) -> ti.f32:
    return ti.select(axis == 0, v.x, ti.select(axis == 1, v.y, v.z))


@ti.func
def _traverse_bvh(ray: Ray, t_min: ti.f32, t_max: ti.f32, any_hit: ti.template()) -> SceneHitRecord:
    """Walk the BVH, returning the closest hit (or the first, for any_hit)."""
    result = _make_miss_record()
    closest_t = t_max

    if num_bvh_nodes[None] > 0:
        inv_direction = safe_inverse(ray.direction)
        stack = ti.Vector.zero(ti.i32, BVH_STACK_SIZE)
        stack_size = 1

        while stack_size > 0:
            stack_size -= 1
            node = stack[stack_size]

            if hit_aabb(
                bvh_box_min[node], bvh_box_max[node], ray.origin, inv_direction, t_min, closest_t
            ):
                count = bvh_count[node]
                if count > 0:
                    start = bvh_start[node]
                    for k in range(start, start + count):
                        rec = intersect_primitive(bvh_order[k], ray, t_min, closest_t)
                        if rec.hit == 1:
                            closest_t = rec.t
                            result = rec
                    if ti.static(any_hit):
                        if result.hit == 1:
                            stack_size = 0
                else:
                    near = bvh_left[node]
                    far = bvh_right[node]
                    if _axis_component(ray.direction, bvh_axis[node]) < 0.0:
                        near = bvh_right[node]
                        far = bvh_left[node]
                    stack[stack_size] = far
                    stack[stack_size + 1] = near
                    stack_size += 2

    return result


@ti.func
def _intersect_unbounded(
    ray: Ray, t_min: ti.f32, result: SceneHitRecord, closest_t: ti.f32
) -> SceneHitRecord:
    best = result
    best_t = closest_t
    for k in range(num_unbounded[None]):
        rec = intersect_primitive(unbounded_primitives[k], ray, t_min, best_t)
        if rec.hit == 1:
            best_t = rec.t
            best = rec
    return best


@ti.func
def intersect_scene(ray: Ray, t_min: ti.f32, t_max: ti.f32) -> SceneHitRecord:
    """Find the closest intersection of a ray with the scene.

    Args:
        ray: The ray to trace.
        t_min: Exclusive lower bound of the valid interval.
        t_max: Exclusive upper bound of the valid interval.

    Returns:
        SceneHitRecord of the closest hit, with hit == 0 on a miss.
    """
    result = _traverse_bvh(ray, t_min, t_max, False)
    closest_t = t_max
    if result.hit == 1:
        closest_t = result.t
    return _intersect_unbounded(ray, t_min, result, closest_t)


@ti.func
def intersect_scene_linear(ray: Ray, t_min: ti.f32, t_max: ti.f32) -> SceneHitRecord:
    """Closest intersection by testing every primitive in order.

    Reference path with the same contract as intersect_scene.
    """
    result = _make_miss_record()
    closest_t = t_max
    for index in range(num_primitives[None]):
        rec = intersect_primitive(index, ray, t_min, closest_t)
        if rec.hit == 1:
            closest_t = rec.t
            result = rec
    return result


@ti.func
def intersect_scene_any(ray: Ray, t_min: ti.f32, t_max: ti.f32) -> ti.i32:
    """Check whether any primitive blocks the ray within (t_min, t_max).

    Used for shadow rays; stops at the first hit found.

    Returns:
        1 if occluded, 0 otherwise.
    """
    occluded = _traverse_bvh(ray, t_min, t_max, True).hit
    if occluded == 0:
        for k in range(num_unbounded[None]):
            if occluded == 0:
                rec = intersect_primitive(unbounded_primitives[k], ray, t_min, t_max)
                occluded = rec.hit
    return occluded


# =============================================================================
# Python-side ray queries
# =============================================================================


@dataclass(frozen=True)
class RayHit:
    """Host-side copy of a scene intersection."""

    t: float
    point: tuple[float, float, float]
    normal: tuple[float, float, float]
    front_face: bool
    u: float
    v: float
    primitive_id: int
    material_id: int


_query_hit = ti.field(dtype=ti.i32, shape=())
_query_t = ti.field(dtype=ti.f32, shape=())
_query_point = ti.Vector.field(3, dtype=ti.f32, shape=())
_query_normal = ti.Vector.field(3, dtype=ti.f32, shape=())
_query_front_face = ti.field(dtype=ti.i32, shape=())
_query_uv = ti.Vector.field(2, dtype=ti.f32, shape=())
_query_primitive = ti.field(dtype=ti.i32, shape=())
_query_material = ti.field(dtype=ti.i32, shape=())


@ti.kernel
def _query_kernel(
    ox: ti.f32,
    oy: ti.f32,
    oz: ti.f32,
    dx: ti.f32,
    dy: ti.f32,
    dz: ti.f32,
    t_min: ti.f32,
    t_max: ti.f32,
    use_bvh: ti.i32,
):
    ray = Ray(origin=vec3(ox, oy, oz), direction=vec3(dx, dy, dz))
    rec = _make_miss_record()
    if use_bvh == 1:
        rec = intersect_scene(ray, t_min, t_max)
    else:
        rec = intersect_scene_linear(ray, t_min, t_max)
    _query_hit[None] = rec.hit
    _query_t[None] = rec.t
    _query_point[None] = rec.point
    _query_normal[None] = rec.normal
    _query_front_face[None] = rec.front_face
    _query_uv[None] = ti.math.vec2(rec.u, rec.v)
    _query_primitive[None] = rec.primitive_id
    _query_material[None] = rec.material_id


@ti.kernel
def _occlusion_kernel(
    ox: ti.f32,
    oy: ti.f32,
    oz: ti.f32,
    dx: ti.f32,
    dy: ti.f32,
    dz: ti.f32,
    t_min: ti.f32,
    t_max: ti.f32,
) -> ti.i32:
    ray = Ray(origin=vec3(ox, oy, oz), direction=vec3(dx, dy, dz))
    return intersect_scene_any(ray, t_min, t_max)


def cast_ray(
    origin: tuple[float, float, float],
    direction: tuple[float, float, float],
    t_min: float = T_MIN,
    t_max: float = T_MAX,
    use_bvh: bool = True,
) -> RayHit | None:
    """Trace a single ray against the uploaded scene.

    Args:
        origin: Ray origin.
        direction: Ray direction (need not be normalized).
        t_min: Exclusive lower bound of the valid interval.
        t_max: Exclusive upper bound of the valid interval.
        use_bvh: Traverse the BVH (True) or scan every primitive (False).

    Returns:
        The closest hit, or None on a miss.
    """
    _query_kernel(*origin, *direction, t_min, t_max, int(use_bvh))
    if _query_hit[None] == 0:
        return None
    uv = _query_uv[None]
    return RayHit(
        t=float(_query_t[None]),
        point=tuple(float(c) for c in _query_point[None]),
        normal=tuple(float(c) for c in _query_normal[None]),
        front_face=bool(_query_front_face[None]),
        u=float(uv[0]),
        v=float(uv[1]),
        primitive_id=int(_query_primitive[None]),
        material_id=int(_query_material[None]),
    )


def is_occluded(
    origin: tuple[float, float, float],
    direction: tuple[float, float, float],
    t_min: float = T_MIN,
    t_max: float = T_MAX,
) -> bool:
    """Whether anything blocks the ray within (t_min, t_max)."""
    return bool(_occlusion_kernel(*origin, *direction, t_min, t_max))
