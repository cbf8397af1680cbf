"""Axis-aligned bounding boxes.

The host-side AABB class is used while building the BVH; hit_aabb is the
slab test the traversal kernel runs against the flattened node boxes.
"""

import math
from collections.abc import Sequence

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from prismtrace.core.ray import vec3
from prismtrace.errors import SceneValidationError

# Boxes are grown by this much on every side so that flat boxes (axis-aligned
# triangles) keep a non-zero slab on each axis
BOX_PADDING = 1e-4


def check_finite(name: str, values: Sequence[float]) -> None:
    """Raise SceneValidationError unless values is three finite numbers."""
    if len(values) != 3:
        raise SceneValidationError(f"{name} must have 3 components, got {len(values)}")
    if not all(math.isfinite(float(c)) for c in values):
        raise SceneValidationError(f"{name} has non-finite coordinates: {tuple(values)}")


class AABB:
    """Axis-aligned box given by its minimum and maximum corners.

    Invariant: minimum <= maximum componentwise.
    """

    __slots__ = ("minimum", "maximum")

    def __init__(self, minimum: npt.ArrayLike, maximum: npt.ArrayLike) -> None:
        self.minimum = np.asarray(minimum, dtype=np.float64).reshape(3)
        self.maximum = np.asarray(maximum, dtype=np.float64).reshape(3)
        if np.any(self.minimum > self.maximum):
            raise ValueError(f"AABB minimum {self.minimum} exceeds maximum {self.maximum}")

    @classmethod
    def empty(cls) -> "AABB":
        """A box that is the identity for union."""
        box = cls.__new__(cls)
        box.minimum = np.full(3, np.inf)
        box.maximum = np.full(3, -np.inf)
        return box

    def union(self, other: "AABB") -> "AABB":
        """Smallest box containing both boxes."""
        return AABB(
            np.minimum(self.minimum, other.minimum), np.maximum(self.maximum, other.maximum)
        )

    def padded(self, amount: float = BOX_PADDING) -> "AABB":
        """Copy of the box grown by amount on every side."""
        return AABB(self.minimum - amount, self.maximum + amount)

    def centroid(self) -> npt.NDArray[np.float64]:
        return 0.5 * (self.minimum + self.maximum)

    def extent(self) -> npt.NDArray[np.float64]:
        return self.maximum - self.minimum

    def longest_axis(self) -> int:
        """Index of the axis with the greatest extent (ties go to the lower axis)."""
        return int(np.argmax(self.extent()))

    def contains(self, other: "AABB", tolerance: float = 0.0) -> bool:
        """Whether other lies entirely inside this box."""
        return bool(
            np.all(self.minimum <= other.minimum + tolerance)
            and np.all(other.maximum <= self.maximum + tolerance)
        )

    def hit(
        self,
        origin: npt.ArrayLike,
        direction: npt.ArrayLike,
        t_min: float,
        t_max: float,
    ) -> bool:
        """Ray-slab test: whether the ray overlaps the box inside [t_min, t_max]."""
        origin = np.asarray(origin, dtype=np.float64)
        direction = np.asarray(direction, dtype=np.float64)
        for axis in range(3):
            d = direction[axis]
            if d == 0.0:
                if origin[axis] < self.minimum[axis] or origin[axis] > self.maximum[axis]:
                    return False
                continue
            t0 = (self.minimum[axis] - origin[axis]) / d
            t1 = (self.maximum[axis] - origin[axis]) / d
            if t0 > t1:
                t0, t1 = t1, t0
            t_min = max(t_min, t0)
            t_max = min(t_max, t1)
            if t_max < t_min:
                return False
        return True

    def __repr__(self) -> str:
        return f"AABB(minimum={self.minimum.tolist()}, maximum={self.maximum.tolist()})"


@ti.func
def hit_aabb(
    box_min: vec3,
    box_max: vec3,
    origin: vec3,
    inv_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> ti.i32:
    """Slab test against a box using a precomputed inverse direction.

    Returns:
        1 if the ray overlaps the box somewhere in [t_min, t_max], else 0.
    """
    t0 = (box_min - origin) * inv_direction
    t1 = (box_max - origin) * inv_direction
    t_near = tm.min(t0, t1)
    t_far = tm.max(t0, t1)
    enter = ti.max(ti.max(t_near.x, t_near.y), ti.max(t_near.z, t_min))
    leave = ti.min(ti.min(t_far.x, t_far.y), ti.min(t_far.z, t_max))
    return ti.cast(enter <= leave, ti.i32)
