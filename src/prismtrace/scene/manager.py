"""Scene manager: collects primitives, materials, lights and a camera.

The SceneManager is the single place scene data is validated. Primitives and
materials are host-side dataclasses that reject malformed values on
construction; the manager additionally checks material references and
capacities. build() then constructs the BVH and uploads every table to the
Taichi fields read by the kernels, after which the scene is read-only for
rendering.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from prismtrace.scene.manager import SceneManager
    >>> scene = SceneManager()
    >>> red = scene.add_diffuse_material(albedo=(0.8, 0.2, 0.2))
    >>> glass = scene.add_dielectric_material(ior=1.5)
    >>> scene.add_sphere(center=(0, 0, -5), radius=1.0, material_id=red)
    >>> scene.add_plane(point=(0, -1, 0), normal=(0, 1, 0), material_id=red)
    >>> scene.add_point_light(position=(5, 5, 0))
    >>> stats = scene.build()
"""

import logging
from dataclasses import dataclass, field

import numpy as np
import numpy.typing as npt

from prismtrace.camera import Camera
from prismtrace.camera.projection import reset_camera, setup_camera
from prismtrace.errors import SceneValidationError
from prismtrace.geometry.aabb import BOX_PADDING
from prismtrace.geometry.bvh import DEFAULT_LEAF_SIZE, build_bvh
from prismtrace.geometry.plane import Plane
from prismtrace.geometry.sphere import Sphere
from prismtrace.geometry.triangle import Triangle
from prismtrace.materials import (
    DielectricMaterial,
    DiffuseMaterial,
    EmissiveMaterial,
    Material,
    MirrorMaterial,
)
from prismtrace.materials.storage import MAX_MATERIALS, clear_materials, upload_materials
from prismtrace.scene.intersection import (
    MAX_PRIMITIVES,
    MAX_UNBOUNDED,
    PrimitiveKind,
    clear_scene,
    upload_bvh,
    upload_primitives,
)
from prismtrace.scene.lights import (
    MAX_LIGHTS,
    DirectionalLight,
    Light,
    PointLight,
    clear_lights,
    upload_lights,
)

logger = logging.getLogger(__name__)

Primitive = Sphere | Plane | Triangle


@dataclass
class SceneStats:
    """Summary of a built scene."""

    primitives: int
    bounded: int
    unbounded: int
    materials: int
    lights: int
    bvh_nodes: int
    bvh_leaves: int
    bvh_depth: int
    counts_by_kind: dict[str, int] = field(default_factory=dict)


class SceneManager:
    """Collects and validates scene data, then uploads it for rendering.

    Attributes:
        materials: Materials in id order.
        primitives: Primitives in id order.
        lights: Lights in insertion order.
        camera: The active camera, or None.
    """

    def __init__(self) -> None:
        self.materials: list[Material] = []
        self.primitives: list[Primitive] = []
        self.lights: list[Light] = []
        self.camera: Camera | None = None
        self._built = False

    def clear(self) -> None:
        """Remove all scene content, host-side and on the device."""
        self.materials.clear()
        self.primitives.clear()
        self.lights.clear()
        self.camera = None
        self._built = False
        clear_scene()
        clear_materials()
        clear_lights()
        reset_camera()

    @property
    def is_built(self) -> bool:
        """Whether the device tables reflect the current host-side scene."""
        return self._built

    # -------------------------------------------------------------------------
    # Materials
    # -------------------------------------------------------------------------

    def add_material(self, material: Material) -> int:
        """Register a material and return its id.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
        """
        if len(self.materials) >= MAX_MATERIALS:
            raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")
        self.materials.append(material)
        self._built = False
        return len(self.materials) - 1

    def add_diffuse_material(
        self,
        albedo: tuple[float, float, float],
        diffuse_weight: float = 1.0,
        specular_weight: float = 0.0,
        shininess: float = 32.0,
    ) -> int:
        """Add a diffuse material lit by the scene's lights.

        Args:
            albedo: Surface color, each component in [0, 1].
            diffuse_weight: Scale of the Lambertian term.
            specular_weight: Scale of the Blinn-Phong highlight.
            shininess: Blinn-Phong exponent.

        Returns:
            The material id.

        Raises:
            SceneValidationError: If any parameter is out of range.
        """
        return self.add_material(
            DiffuseMaterial(albedo, diffuse_weight, specular_weight, shininess)
        )

    def add_mirror_material(self, reflectance: tuple[float, float, float] = (1.0, 1.0, 1.0)) -> int:
        """Add a perfect mirror material and return its id."""
        return self.add_material(MirrorMaterial(reflectance))

    def add_dielectric_material(
        self,
        ior: float = 1.5,
        transmittance: tuple[float, float, float] = (1.0, 1.0, 1.0),
    ) -> int:
        """Add a dielectric (glass/water) material.

        Args:
            ior: Index of refraction, >= 1.
            transmittance: Tint applied to refracted light.

        Returns:
            The material id.

        Raises:
            SceneValidationError: If ior < 1 or transmittance is out of range.
        """
        return self.add_material(DielectricMaterial(ior, transmittance))

    def add_emissive_material(self, color: tuple[float, float, float]) -> int:
        """Add a self-lit material and return its id."""
        return self.add_material(EmissiveMaterial(color))

    def get_material_count(self) -> int:
        return len(self.materials)

    # -------------------------------------------------------------------------
    # Primitives
    # -------------------------------------------------------------------------

    def _check_material(self, material_id: int) -> None:
        if not 0 <= material_id < len(self.materials):
            raise SceneValidationError(f"Invalid material_id: {material_id}")

    def add_primitive(self, primitive: Primitive) -> int:
        """Add an already constructed primitive and return its id.

        Raises:
            SceneValidationError: If the primitive references a missing material.
            RuntimeError: If the maximum number of primitives is exceeded.
        """
        self._check_material(primitive.material_id)
        if len(self.primitives) >= MAX_PRIMITIVES:
            raise RuntimeError(f"Maximum number of primitives ({MAX_PRIMITIVES}) exceeded")
        if isinstance(primitive, Plane):
            planes = sum(1 for p in self.primitives if isinstance(p, Plane))
            if planes >= MAX_UNBOUNDED:
                raise RuntimeError(f"Maximum number of planes ({MAX_UNBOUNDED}) exceeded")
        self.primitives.append(primitive)
        self._built = False
        return len(self.primitives) - 1

    def add_sphere(
        self,
        center: tuple[float, float, float],
        radius: float,
        material_id: int,
    ) -> int:
        """Add a sphere.

        Raises:
            SceneValidationError: If the radius is not positive, the center is
                not finite or the material does not exist.
        """
        return self.add_primitive(Sphere(tuple(center), float(radius), material_id))

    def add_plane(
        self,
        point: tuple[float, float, float],
        normal: tuple[float, float, float],
        material_id: int,
    ) -> int:
        """Add an infinite plane.

        Raises:
            SceneValidationError: If the normal is zero, a coordinate is not
                finite or the material does not exist.
        """
        return self.add_primitive(Plane(tuple(point), tuple(normal), material_id))

    def add_triangle(
        self,
        v0: tuple[float, float, float],
        v1: tuple[float, float, float],
        v2: tuple[float, float, float],
        material_id: int,
    ) -> int:
        """Add a triangle. Counter-clockwise winding faces the viewer.

        Raises:
            SceneValidationError: If the triangle has zero area, a vertex is
                not finite or the material does not exist.
        """
        return self.add_primitive(Triangle(tuple(v0), tuple(v1), tuple(v2), material_id))

    def add_quad(
        self,
        corner: tuple[float, float, float],
        edge_u: tuple[float, float, float],
        edge_v: tuple[float, float, float],
        material_id: int,
    ) -> tuple[int, int]:
        """Add a parallelogram as two triangles.

        The quad spans corner + a*edge_u + b*edge_v for a, b in [0, 1]. Its
        front side is the one cross(edge_u, edge_v) points to.

        Returns:
            The ids of the two triangles.
        """
        q = np.asarray(corner, dtype=np.float64)
        u = np.asarray(edge_u, dtype=np.float64)
        v = np.asarray(edge_v, dtype=np.float64)
        corners = [tuple(float(c) for c in p) for p in (q, q + u, q + u + v, q + v)]
        first = self.add_triangle(corners[0], corners[1], corners[2], material_id)
        second = self.add_triangle(corners[0], corners[2], corners[3], material_id)
        return first, second

    def add_triangle_mesh(
        self,
        vertices: npt.ArrayLike,
        faces: npt.ArrayLike,
        material_id: int,
    ) -> list[int]:
        """Add an indexed triangle mesh sharing one material.

        Args:
            vertices: Vertex positions, shape (n, 3).
            faces: Vertex indices per triangle, shape (m, 3).
            material_id: Material shared by every triangle.

        Returns:
            The ids of the added triangles, in face order.

        Raises:
            SceneValidationError: If the arrays are malformed, an index is
                out of range or any face is degenerate. Nothing is added then.
        """
        vertices = np.asarray(vertices, dtype=np.float64)
        faces = np.asarray(faces)
        if vertices.ndim != 2 or vertices.shape[1] != 3:
            raise SceneValidationError(
                f"Mesh vertices must have shape (n, 3), got {vertices.shape}"
            )
        if faces.ndim != 2 or faces.shape[1] != 3:
            raise SceneValidationError(f"Mesh faces must have shape (m, 3), got {faces.shape}")
        if not np.issubdtype(faces.dtype, np.integer):
            raise SceneValidationError("Mesh face indices must be integers")
        if faces.size and (faces.min() < 0 or faces.max() >= len(vertices)):
            raise SceneValidationError("Mesh face index out of range")
        self._check_material(material_id)
        if len(self.primitives) + len(faces) > MAX_PRIMITIVES:
            raise RuntimeError(f"Maximum number of primitives ({MAX_PRIMITIVES}) exceeded")

        triangles = [
            Triangle(
                tuple(vertices[a].tolist()),
                tuple(vertices[b].tolist()),
                tuple(vertices[c].tolist()),
                material_id,
            )
            for a, b, c in faces
        ]
        return [self.add_primitive(triangle) for triangle in triangles]

    def get_primitive_count(self) -> int:
        return len(self.primitives)

    # -------------------------------------------------------------------------
    # Lights and camera
    # -------------------------------------------------------------------------

    def add_light(self, light: Light) -> int:
        """Add a light and return its index.

        Raises:
            RuntimeError: If the maximum number of lights is exceeded.
        """
        if len(self.lights) >= MAX_LIGHTS:
            raise RuntimeError(f"Maximum number of lights ({MAX_LIGHTS}) exceeded")
        self.lights.append(light)
        self._built = False
        return len(self.lights) - 1

    def add_point_light(
        self,
        position: tuple[float, float, float],
        color: tuple[float, float, float] = (1.0, 1.0, 1.0),
        intensity: float = 1.0,
    ) -> int:
        return self.add_light(PointLight(tuple(position), tuple(color), float(intensity)))

    def add_directional_light(
        self,
        direction: tuple[float, float, float],
        color: tuple[float, float, float] = (1.0, 1.0, 1.0),
        intensity: float = 1.0,
    ) -> int:
        return self.add_light(DirectionalLight(tuple(direction), tuple(color), float(intensity)))

    def set_camera(self, camera: Camera) -> None:
        """Set the camera used for rendering."""
        self.camera = camera
        self._built = False

    # -------------------------------------------------------------------------
    # Build
    # -------------------------------------------------------------------------

    def _pack_primitives(self) -> dict[str, np.ndarray]:
        count = len(self.primitives)
        kinds = np.zeros(count, dtype=np.int32)
        a = np.zeros((count, 3), dtype=np.float64)
        b = np.zeros((count, 3), dtype=np.float64)
        c = np.zeros((count, 3), dtype=np.float64)
        radii = np.zeros(count, dtype=np.float64)
        materials = np.zeros(count, dtype=np.int32)

        for i, primitive in enumerate(self.primitives):
            materials[i] = primitive.material_id
            if isinstance(primitive, Sphere):
                kinds[i] = PrimitiveKind.SPHERE
                a[i] = primitive.center
                radii[i] = primitive.radius
            elif isinstance(primitive, Plane):
                kinds[i] = PrimitiveKind.PLANE
                a[i] = primitive.point
                b[i] = primitive.normal
            else:
                kinds[i] = PrimitiveKind.TRIANGLE
                a[i] = primitive.v0
                b[i] = primitive.v1
                c[i] = primitive.v2

        return {"kinds": kinds, "a": a, "b": b, "c": c, "radii": radii, "materials": materials}

    def build(self, leaf_size: int = DEFAULT_LEAF_SIZE) -> SceneStats:
        """Build the BVH and upload the scene for rendering.

        Args:
            leaf_size: Maximum number of primitives per BVH leaf.

        Returns:
            Statistics about the uploaded scene.
        """
        bounded_ids: list[int] = []
        unbounded_ids: list[int] = []
        boxes_min: list[np.ndarray] = []
        boxes_max: list[np.ndarray] = []
        for i, primitive in enumerate(self.primitives):
            if isinstance(primitive, Plane):
                unbounded_ids.append(i)
                continue
            box = primitive.bounds().padded(BOX_PADDING)
            bounded_ids.append(i)
            boxes_min.append(box.minimum)
            boxes_max.append(box.maximum)

        bvh = build_bvh(
            np.array(boxes_min).reshape(-1, 3),
            np.array(boxes_max).reshape(-1, 3),
            leaf_size=leaf_size,
        )

        packed = self._pack_primitives()
        upload_primitives(**packed)
        upload_bvh(bvh, bounded_ids, unbounded_ids)
        upload_materials([m.pack() for m in self.materials])
        upload_lights(self.lights)
        if self.camera is not None:
            setup_camera(self.camera)
        else:
            reset_camera()
        self._built = True

        counts = {
            kind.name.lower(): int(np.count_nonzero(packed["kinds"] == kind))
            for kind in PrimitiveKind
        }
        stats = SceneStats(
            primitives=len(self.primitives),
            bounded=len(bounded_ids),
            unbounded=len(unbounded_ids),
            materials=len(self.materials),
            lights=len(self.lights),
            bvh_nodes=bvh.node_count,
            bvh_leaves=bvh.leaf_count,
            bvh_depth=bvh.depth,
            counts_by_kind=counts,
        )
        logger.info(
            "Built scene: %d primitives (%d in BVH, %d planes), %d materials, %d lights; "
            "BVH %d nodes, %d leaves, depth %d",
            stats.primitives,
            stats.bounded,
            stats.unbounded,
            stats.materials,
            stats.lights,
            stats.bvh_nodes,
            stats.bvh_leaves,
            stats.bvh_depth,
        )
        return stats

    def __repr__(self) -> str:
        return (
            f"SceneManager(primitives={len(self.primitives)}, materials={len(self.materials)}, "
            f"lights={len(self.lights)}, built={self._built})"
        )

