"""Tests for scene intersection through the BVH.

The linear scan over every primitive is the reference: for any ray the BVH
path must report the same closest hit.
"""

import numpy as np
import pytest


def _random_scene(seed, spheres=60, triangles=60):
    """Build a scene of random spheres and triangles.

    Returns the scene, the generator and the center of every primitive.
    """
    from prismtrace.scene.manager import SceneManager

    rng = np.random.default_rng(seed)
    scene = SceneManager()
    material = scene.add_diffuse_material((0.5, 0.5, 0.5))
    centers = []
    for _ in range(spheres):
        center = rng.uniform(-10.0, 10.0, size=3)
        scene.add_sphere(tuple(center.tolist()), float(rng.uniform(0.2, 1.0)), material)
        centers.append(center)
    for _ in range(triangles):
        base = rng.uniform(-10.0, 10.0, size=3)
        v1 = base + rng.uniform(-1.5, 1.5, size=3)
        v2 = base + rng.uniform(-1.5, 1.5, size=3)
        scene.add_triangle(tuple(base.tolist()), tuple(v1.tolist()), tuple(v2.tolist()), material)
        centers.append((base + v1 + v2) / 3.0)
    return scene, rng, centers


def _random_direction(rng):
    d = rng.normal(size=3)
    return tuple((d / np.linalg.norm(d)).tolist())


class TestBVHMatchesLinear:
    """Tests that BVH traversal agrees with the linear reference."""

    @pytest.mark.parametrize("seed", [0, 1, 2])
    def test_random_rays(self, seed):
        """Test rays mostly aimed at primitive centers, some in random directions."""
        from prismtrace.scene.intersection import cast_ray

        scene, rng, centers = _random_scene(seed)
        scene.build(leaf_size=2)

        hits = 0
        for i in range(200):
            origin = rng.uniform(-15.0, 15.0, size=3)
            if i % 5 == 0:
                direction = _random_direction(rng)
            else:
                target = centers[rng.integers(len(centers))]
                direction = tuple(((target - origin) / np.linalg.norm(target - origin)).tolist())
            origin = tuple(origin.tolist())
            fast = cast_ray(origin, direction)
            slow = cast_ray(origin, direction, use_bvh=False)
            assert (fast is None) == (slow is None)
            if fast is None:
                continue
            hits += 1
            assert fast.primitive_id == slow.primitive_id
            assert fast.t == pytest.approx(slow.t, abs=1e-5)
        # Every aimed ray reaches its target or something in front of it
        assert hits >= 150

    def test_rays_from_inside_bounds(self):
        """Test rays starting at the scene center in every direction."""
        from prismtrace.scene.intersection import cast_ray

        scene, rng, _ = _random_scene(7, spheres=100, triangles=0)
        scene.build(leaf_size=1)

        for _ in range(100):
            direction = _random_direction(rng)
            fast = cast_ray((0.0, 0.0, 0.0), direction)
            slow = cast_ray((0.0, 0.0, 0.0), direction, use_bvh=False)
            assert (fast is None) == (slow is None)
            if fast is not None:
                assert fast.primitive_id == slow.primitive_id
                assert fast.t == pytest.approx(slow.t, abs=1e-5)


class TestCastRay:
    """Tests for cast_ray results."""

    def test_closest_of_two_spheres(self):
        from prismtrace.scene.intersection import cast_ray
        from prismtrace.scene.manager import SceneManager

        scene = SceneManager()
        material = scene.add_diffuse_material((0.5, 0.5, 0.5))
        far = scene.add_sphere((0.0, 0.0, -10.0), 1.0, material)
        near = scene.add_sphere((0.0, 0.0, -5.0), 1.0, material)
        scene.build()

        hit = cast_ray((0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        assert hit is not None
        assert hit.primitive_id == near
        assert hit.t == pytest.approx(4.0, abs=1e-5)
        assert hit.normal == pytest.approx((0.0, 0.0, 1.0), abs=1e-5)
        assert hit.front_face

        # Shrinking t_max below the near sphere exposes nothing
        assert cast_ray((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), t_max=3.0) is None
        # Starting past the near sphere finds the far one
        assert cast_ray((0.0, 0.0, -7.0), (0.0, 0.0, -1.0)).primitive_id == far

    def test_plane_and_bounded_primitives(self):
        """Test planes (outside the BVH) compete with BVH hits."""
        from prismtrace.scene.intersection import cast_ray
        from prismtrace.scene.manager import SceneManager

        scene = SceneManager()
        material = scene.add_diffuse_material((0.5, 0.5, 0.5))
        floor = scene.add_plane((0.0, -1.0, 0.0), (0.0, 1.0, 0.0), material)
        sphere = scene.add_sphere((0.0, 0.0, -5.0), 1.0, material)
        stats = scene.build()
        assert stats.unbounded == 1
        assert stats.bounded == 1

        assert cast_ray((0.0, 0.0, 0.0), (0.0, 0.0, -1.0)).primitive_id == sphere
        hit = cast_ray((0.0, 5.0, 20.0), (0.0, -1.0, 0.0))
        assert hit.primitive_id == floor
        assert hit.t == pytest.approx(6.0, abs=1e-5)

    def test_empty_scene(self):
        from prismtrace.scene.intersection import cast_ray, is_occluded
        from prismtrace.scene.manager import SceneManager

        scene = SceneManager()
        stats = scene.build()
        assert stats.bvh_nodes == 0
        assert cast_ray((0.0, 0.0, 0.0), (0.0, 0.0, -1.0)) is None
        assert not is_occluded((0.0, 0.0, 0.0), (0.0, 0.0, -1.0))

    def test_quad_hit_reports_material(self):
        from prismtrace.scene.intersection import cast_ray
        from prismtrace.scene.manager import SceneManager

        scene = SceneManager()
        scene.add_diffuse_material((0.5, 0.5, 0.5))
        red = scene.add_diffuse_material((0.9, 0.1, 0.1))
        scene.add_quad((-1.0, -1.0, -3.0), (2.0, 0.0, 0.0), (0.0, 2.0, 0.0), red)
        scene.build()

        hit = cast_ray((0.3, -0.6, 0.0), (0.0, 0.0, -1.0))
        assert hit is not None
        assert hit.material_id == red
        assert hit.t == pytest.approx(3.0, abs=1e-5)
        assert cast_ray((1.5, 0.0, 0.0), (0.0, 0.0, -1.0)) is None


class TestOcclusion:
    """Tests for any-hit shadow queries."""

    def test_blocker_inside_interval(self):
        from prismtrace.scene.intersection import is_occluded
        from prismtrace.scene.manager import SceneManager

        scene = SceneManager()
        material = scene.add_diffuse_material((0.5, 0.5, 0.5))
        scene.add_sphere((0.0, 0.0, -5.0), 1.0, material)
        scene.build()

        assert is_occluded((0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        # Light sits in front of the blocker
        assert not is_occluded((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), t_max=3.9)
        assert not is_occluded((0.0, 0.0, 0.0), (0.0, 0.0, 1.0))

    def test_plane_occludes(self):
        from prismtrace.scene.intersection import is_occluded
        from prismtrace.scene.manager import SceneManager

        scene = SceneManager()
        material = scene.add_diffuse_material((0.5, 0.5, 0.5))
        scene.add_plane((0.0, 0.0, 0.0), (0.0, 1.0, 0.0), material)
        scene.build()

        assert is_occluded((0.0, 1.0, 0.0), (0.0, -1.0, 0.0))
        assert not is_occluded((0.0, 1.0, 0.0), (0.0, 1.0, 0.0))
