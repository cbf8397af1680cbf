"""Tests for SceneManager.

Tests cover:
- Material, primitive and light registration
- Validation errors raised at insertion time
- Quads and indexed meshes
- Building and scene statistics
- Clearing
"""

import numpy as np
import pytest


class TestSceneManagerMaterials:
    """Tests for material registration."""

    def test_ids_are_sequential(self):
        from prismtrace.scene.manager import SceneManager

        scene = SceneManager()
        assert scene.add_diffuse_material((0.5, 0.5, 0.5)) == 0
        assert scene.add_mirror_material() == 1
        assert scene.add_dielectric_material(1.33) == 2
        assert scene.add_emissive_material((2.0, 2.0, 2.0)) == 3
        assert scene.get_material_count() == 4

    def test_material_table_uploaded_on_build(self):
        from prismtrace.materials.storage import get_material_count
        from prismtrace.scene.manager import SceneManager

        scene = SceneManager()
        scene.add_diffuse_material((0.5, 0.5, 0.5))
        scene.add_mirror_material()
        assert get_material_count() == 0
        scene.build()
        assert get_material_count() == 2


class TestSceneManagerValidation:
    """Tests for invalid scene input."""

    def test_unknown_material(self):
        from prismtrace.errors import SceneValidationError
        from prismtrace.scene.manager import SceneManager

        scene = SceneManager()
        scene.add_diffuse_material((0.5, 0.5, 0.5))
        with pytest.raises(SceneValidationError, match="material_id"):
            scene.add_sphere((0.0, 0.0, 0.0), 1.0, 5)
        with pytest.raises(SceneValidationError, match="material_id"):
            scene.add_triangle((0, 0, 0), (1, 0, 0), (0, 1, 0), -1)

    def test_invalid_shapes(self):
        from prismtrace.errors import SceneValidationError
        from prismtrace.scene.manager import SceneManager

        scene = SceneManager()
        material = scene.add_diffuse_material((0.5, 0.5, 0.5))
        with pytest.raises(SceneValidationError):
            scene.add_sphere((0.0, 0.0, 0.0), -1.0, material)
        with pytest.raises(SceneValidationError):
            scene.add_plane((0.0, 0.0, 0.0), (0.0, 0.0, 0.0), material)
        with pytest.raises(SceneValidationError):
            scene.add_triangle((0, 0, 0), (0, 0, 0), (0, 1, 0), material)
        assert scene.get_primitive_count() == 0

    def test_scene_validation_error_is_value_error(self):
        from prismtrace.errors import SceneValidationError

        assert issubclass(SceneValidationError, ValueError)

    def test_invalid_lights(self):
        from prismtrace.errors import SceneValidationError
        from prismtrace.scene.manager import SceneManager

        scene = SceneManager()
        with pytest.raises(SceneValidationError):
            scene.add_directional_light((0.0, 0.0, 0.0))
        with pytest.raises(SceneValidationError):
            scene.add_point_light((0.0, 0.0, 0.0), intensity=-1.0)

    def test_plane_capacity(self):
        from prismtrace.scene.intersection import MAX_UNBOUNDED
        from prismtrace.scene.manager import SceneManager

        scene = SceneManager()
        material = scene.add_diffuse_material((0.5, 0.5, 0.5))
        for i in range(MAX_UNBOUNDED):
            scene.add_plane((0.0, float(i), 0.0), (0.0, 1.0, 0.0), material)
        with pytest.raises(RuntimeError, match="planes"):
            scene.add_plane((0.0, -1.0, 0.0), (0.0, 1.0, 0.0), material)


class TestSceneManagerShapes:
    """Tests for compound shapes."""

    def test_quad_is_two_triangles(self):
        from prismtrace.geometry import Triangle
        from prismtrace.scene.manager import SceneManager

        scene = SceneManager()
        material = scene.add_diffuse_material((0.5, 0.5, 0.5))
        ids = scene.add_quad((0, 0, 0), (2, 0, 0), (0, 3, 0), material)
        assert ids == (0, 1)
        triangles = scene.primitives
        assert all(isinstance(t, Triangle) for t in triangles)
        assert sum(t.area() for t in triangles) == pytest.approx(6.0)
        # Both halves face along cross(edge_u, edge_v)
        for t in triangles:
            assert t.normal().tolist() == pytest.approx([0.0, 0.0, 1.0])

    def test_triangle_mesh(self):
        from prismtrace.scene.manager import SceneManager

        scene = SceneManager()
        material = scene.add_diffuse_material((0.5, 0.5, 0.5))
        vertices = np.array([(0, 0, 0), (1, 0, 0), (1, 1, 0), (0, 1, 0)], dtype=float)
        faces = np.array([(0, 1, 2), (0, 2, 3)])
        ids = scene.add_triangle_mesh(vertices, faces, material)
        assert ids == [0, 1]
        assert scene.primitives[1].v2 == (0.0, 1.0, 0.0)

    def test_mesh_rejected_atomically(self):
        from prismtrace.errors import SceneValidationError
        from prismtrace.scene.manager import SceneManager

        scene = SceneManager()
        material = scene.add_diffuse_material((0.5, 0.5, 0.5))
        vertices = [(0, 0, 0), (1, 0, 0), (0, 1, 0), (2, 0, 0)]
        # Second face is degenerate (collinear)
        with pytest.raises(SceneValidationError):
            scene.add_triangle_mesh(vertices, [(0, 1, 2), (0, 1, 3)], material)
        with pytest.raises(SceneValidationError, match="out of range"):
            scene.add_triangle_mesh(vertices, [(0, 1, 7)], material)
        with pytest.raises(SceneValidationError, match="shape"):
            scene.add_triangle_mesh(vertices, [(0, 1)], material)
        assert scene.get_primitive_count() == 0


class TestSceneManagerBuild:
    """Tests for build and clear."""

    def test_build_stats(self):
        from prismtrace.scene.intersection import get_bvh_node_count, get_primitive_count
        from prismtrace.scene.lights import get_light_count
        from prismtrace.scene.manager import SceneManager

        scene = SceneManager()
        material = scene.add_diffuse_material((0.5, 0.5, 0.5))
        for i in range(10):
            scene.add_sphere((float(i) * 3.0, 0.0, 0.0), 1.0, material)
        scene.add_quad((0, 0, 5), (1, 0, 0), (0, 1, 0), material)
        scene.add_plane((0.0, -1.0, 0.0), (0.0, 1.0, 0.0), material)
        scene.add_point_light((0.0, 10.0, 0.0))

        assert not scene.is_built
        stats = scene.build(leaf_size=2)
        assert scene.is_built
        assert stats.primitives == 13
        assert stats.bounded == 12
        assert stats.unbounded == 1
        assert stats.counts_by_kind == {"sphere": 10, "plane": 1, "triangle": 2}
        assert stats.bvh_leaves == 8
        assert stats.bvh_nodes == 15
        assert get_primitive_count() == 13
        assert get_bvh_node_count() == 15
        assert get_light_count() == 1

    def test_adding_after_build_marks_dirty(self):
        from prismtrace.scene.manager import SceneManager

        scene = SceneManager()
        material = scene.add_diffuse_material((0.5, 0.5, 0.5))
        scene.build()
        scene.add_sphere((0.0, 0.0, 0.0), 1.0, material)
        assert not scene.is_built

    def test_camera_uploaded_on_build(self):
        from prismtrace.camera import PerspectiveCamera
        from prismtrace.camera.projection import is_camera_ready
        from prismtrace.scene.manager import SceneManager

        scene = SceneManager()
        scene.set_camera(PerspectiveCamera(lookfrom=(0.0, 0.0, 0.0), lookat=(0.0, 0.0, -1.0)))
        assert not is_camera_ready()
        scene.build()
        assert is_camera_ready()

    def test_clear(self):
        from prismtrace.scene.intersection import get_primitive_count
        from prismtrace.scene.manager import SceneManager

        scene = SceneManager()
        material = scene.add_diffuse_material((0.5, 0.5, 0.5))
        scene.add_sphere((0.0, 0.0, 0.0), 1.0, material)
        scene.build()
        scene.clear()
        assert scene.get_primitive_count() == 0
        assert scene.get_material_count() == 0
        assert get_primitive_count() == 0
        assert "primitives=0" in repr(scene)
