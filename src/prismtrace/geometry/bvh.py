"""Bounding volume hierarchy construction.

The BVH is built once per scene on the host with NumPy and flattened into an
arena of nodes addressed by index. Each node stores its box, its two child
indices and the split axis; leaves instead store a [start, start + count)
range into a reordered primitive index array. The arrays are uploaded to
Taichi fields by the scene module and traversed there with an explicit
stack (see prismtrace.scene.intersection).

Construction: compute the bounds of the current primitive set; if it holds
at most leaf_size primitives emit a leaf, otherwise split at the median of
the primitive centroids along the longest axis of the bounds and recurse.
Nodes are emitted in pre-order, so the root is node 0.

Example:
    >>> boxes_min = np.array([[0, 0, 0], [2, 0, 0]], dtype=np.float64)
    >>> boxes_max = boxes_min + 1.0
    >>> bvh = build_bvh(boxes_min, boxes_max, leaf_size=1)
    >>> bvh.node_count, bvh.leaf_count
    (3, 2)
"""

import logging
from collections.abc import Iterator
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

from prismtrace.geometry.aabb import AABB

logger = logging.getLogger(__name__)

DEFAULT_LEAF_SIZE = 4

# Traversal keeps at most depth + 1 pending nodes on its fixed-size stack
MAX_BVH_DEPTH = 30


@dataclass
class FlatBVH:
    """A BVH flattened into parallel node arrays.

    Attributes:
        box_min: Node box minimum corners, shape (nodes, 3), float32.
        box_max: Node box maximum corners, shape (nodes, 3), float32.
        left: Left child index per node (-1 for leaves).
        right: Right child index per node (-1 for leaves).
        axis: Split axis per interior node (0 for leaves).
        start: First slot in ``order`` for leaves (0 for interior nodes).
        count: Number of primitives in a leaf, 0 for interior nodes.
        order: Primitive indices grouped so each leaf owns a contiguous range.
        depth: Number of node levels (0 for an empty tree).
    """

    box_min: npt.NDArray[np.float32]
    box_max: npt.NDArray[np.float32]
    left: npt.NDArray[np.int32]
    right: npt.NDArray[np.int32]
    axis: npt.NDArray[np.int32]
    start: npt.NDArray[np.int32]
    count: npt.NDArray[np.int32]
    order: npt.NDArray[np.int32]
    depth: int

    @property
    def node_count(self) -> int:
        return int(self.left.shape[0])

    @property
    def leaf_count(self) -> int:
        return int(np.count_nonzero(self.count))

    def is_leaf(self, node: int) -> bool:
        return bool(self.count[node] > 0)

    def leaf_primitives(self, node: int) -> npt.NDArray[np.int32]:
        """Primitive indices owned by a leaf."""
        start = int(self.start[node])
        return self.order[start : start + int(self.count[node])]

    def node_box(self, node: int) -> AABB:
        return AABB(self.box_min[node], self.box_max[node])

    def query_candidates(
        self,
        origin: npt.ArrayLike,
        direction: npt.ArrayLike,
        t_min: float = 0.0,
        t_max: float = np.inf,
    ) -> list[int]:
        """Primitives whose leaves the ray reaches without box pruning.

        Host-side helper that walks the same tree the kernels walk, useful
        for inspecting how much of the scene a ray touches.
        """
        candidates: list[int] = []
        for node in self._visit(origin, direction, t_min, t_max):
            if self.is_leaf(node):
                candidates.extend(int(p) for p in self.leaf_primitives(node))
        return candidates

    def _visit(
        self,
        origin: npt.ArrayLike,
        direction: npt.ArrayLike,
        t_min: float,
        t_max: float,
    ) -> Iterator[int]:
        if self.node_count == 0:
            return
        stack = [0]
        while stack:
            node = stack.pop()
            if not self.node_box(node).hit(origin, direction, t_min, t_max):
                continue
            yield node
            if not self.is_leaf(node):
                stack.append(int(self.right[node]))
                stack.append(int(self.left[node]))


class _Builder:
    def __init__(
        self,
        box_min: npt.NDArray[np.float64],
        box_max: npt.NDArray[np.float64],
        leaf_size: int,
    ) -> None:
        self.box_min = box_min
        self.box_max = box_max
        self.centroids = 0.5 * (box_min + box_max)
        self.leaf_size = leaf_size
        self.order = np.arange(box_min.shape[0], dtype=np.int64)

        self.node_min: list[npt.NDArray[np.float64]] = []
        self.node_max: list[npt.NDArray[np.float64]] = []
        self.left: list[int] = []
        self.right: list[int] = []
        self.axis: list[int] = []
        self.start: list[int] = []
        self.count: list[int] = []
        self.depth = 0

    def _new_node(self, start: int, end: int) -> int:
        indices = self.order[start:end]
        self.node_min.append(self.box_min[indices].min(axis=0))
        self.node_max.append(self.box_max[indices].max(axis=0))
        self.left.append(-1)
        self.right.append(-1)
        self.axis.append(0)
        self.start.append(0)
        self.count.append(0)
        return len(self.left) - 1

    def build(self, start: int, end: int, level: int) -> int:
        self.depth = max(self.depth, level + 1)
        if self.depth > MAX_BVH_DEPTH:
            raise RuntimeError(f"BVH depth exceeds {MAX_BVH_DEPTH} levels")

        node = self._new_node(start, end)
        count = end - start

        if count <= self.leaf_size:
            self.start[node] = start
            self.count[node] = count
            return node

        axis = int(np.argmax(self.node_max[node] - self.node_min[node]))
        indices = self.order[start:end]
        ranked = np.argsort(self.centroids[indices, axis], kind="stable")
        self.order[start:end] = indices[ranked]

        mid = start + count // 2
        self.axis[node] = axis
        self.left[node] = self.build(start, mid, level + 1)
        self.right[node] = self.build(mid, end, level + 1)
        return node


def _round_outward(values: npt.NDArray[np.float64], toward: float) -> npt.NDArray[np.float32]:
    # float32 rounding must never shrink a box
    rounded = values.astype(np.float32)
    return np.nextafter(rounded, np.float32(toward)).astype(np.float32)


def build_bvh(
    box_min: npt.ArrayLike,
    box_max: npt.ArrayLike,
    leaf_size: int = DEFAULT_LEAF_SIZE,
) -> FlatBVH:
    """Build a BVH over primitive bounding boxes.

    Args:
        box_min: Minimum corners, shape (n, 3).
        box_max: Maximum corners, shape (n, 3).
        leaf_size: Maximum number of primitives in a leaf.

    Returns:
        The flattened tree. An empty input yields a tree with no nodes.

    Raises:
        ValueError: If the arrays have mismatched shapes or leaf_size < 1.
    """
    if leaf_size < 1:
        raise ValueError(f"leaf_size must be at least 1, got {leaf_size}")

    box_min = np.asarray(box_min, dtype=np.float64).reshape(-1, 3)
    box_max = np.asarray(box_max, dtype=np.float64).reshape(-1, 3)
    if box_min.shape != box_max.shape:
        raise ValueError(f"Box arrays differ in shape: {box_min.shape} vs {box_max.shape}")

    count = box_min.shape[0]
    if count == 0:
        empty_i = np.zeros(0, dtype=np.int32)
        empty_v = np.zeros((0, 3), dtype=np.float32)
        return FlatBVH(
            box_min=empty_v,
            box_max=empty_v.copy(),
            left=empty_i,
            right=empty_i.copy(),
            axis=empty_i.copy(),
            start=empty_i.copy(),
            count=empty_i.copy(),
            order=empty_i.copy(),
            depth=0,
        )

    builder = _Builder(box_min, box_max, leaf_size)
    builder.build(0, count, 0)

    bvh = FlatBVH(
        box_min=_round_outward(np.array(builder.node_min), -np.inf),
        box_max=_round_outward(np.array(builder.node_max), np.inf),
        left=np.array(builder.left, dtype=np.int32),
        right=np.array(builder.right, dtype=np.int32),
        axis=np.array(builder.axis, dtype=np.int32),
        start=np.array(builder.start, dtype=np.int32),
        count=np.array(builder.count, dtype=np.int32),
        order=builder.order.astype(np.int32),
        depth=builder.depth,
    )
    logger.debug(
        "Built BVH over %d primitives: %d nodes, %d leaves, depth %d",
        count,
        bvh.node_count,
        bvh.leaf_count,
        bvh.depth,
    )
    return bvh
