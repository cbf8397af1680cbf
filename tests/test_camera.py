"""Tests for cameras and primary ray generation."""

import math

import numpy as np
import pytest


def _ray(px, py, width, height, offset=(0.5, 0.5)):
    from prismtrace.camera.projection import primary_ray

    origin, direction = primary_ray(px, py, width, height, sample_offset=offset)
    return np.array(origin.to_numpy()), np.array(direction.to_numpy())


class TestCameraConfig:
    """Tests for host-side camera configuration."""

    def test_basis_is_orthonormal(self):
        from prismtrace.camera import camera_basis

        u, v, w = camera_basis((1.0, 2.0, 3.0), (0.0, 0.0, 0.0), (0.0, 1.0, 0.0))
        for a in (u, v, w):
            assert np.linalg.norm(a) == pytest.approx(1.0)
        assert np.dot(u, v) == pytest.approx(0.0, abs=1e-12)
        assert np.dot(v, w) == pytest.approx(0.0, abs=1e-12)
        # w points from the target back to the eye
        assert np.dot(w, np.array([1.0, 2.0, 3.0])) > 0.0

    def test_coincident_eye_and_target(self):
        from prismtrace.camera import PerspectiveCamera
        from prismtrace.errors import SceneValidationError

        with pytest.raises(SceneValidationError, match="differ"):
            PerspectiveCamera(lookfrom=(0.0, 0.0, 0.0), lookat=(0.0, 0.0, 0.0))

    def test_vup_parallel_to_view(self):
        from prismtrace.camera import OrthographicCamera
        from prismtrace.errors import SceneValidationError

        with pytest.raises(SceneValidationError, match="parallel"):
            OrthographicCamera(lookfrom=(0.0, 5.0, 0.0), lookat=(0.0, 0.0, 0.0))

    @pytest.mark.parametrize("vfov", [0.0, 180.0, -10.0])
    def test_invalid_vfov(self, vfov):
        from prismtrace.camera import PerspectiveCamera
        from prismtrace.errors import SceneValidationError

        with pytest.raises(SceneValidationError):
            PerspectiveCamera(lookfrom=(0.0, 0.0, 0.0), lookat=(0.0, 0.0, -1.0), vfov=vfov)


class TestPerspectiveRays:
    """Tests for perspective primary rays."""

    def test_rays_share_origin_and_fan_out(self):
        from prismtrace.camera import PerspectiveCamera
        from prismtrace.camera.projection import setup_camera

        setup_camera(PerspectiveCamera(lookfrom=(0.0, 0.0, 0.0), lookat=(0.0, 0.0, -1.0)))

        o1, d1 = _ray(0, 0, 16, 16)
        o2, d2 = _ray(15, 15, 16, 16)
        assert np.allclose(o1, o2)
        assert not np.allclose(d1, d2)
        assert np.linalg.norm(d1) == pytest.approx(1.0, abs=1e-5)

    def test_center_ray_looks_at_target(self):
        from prismtrace.camera import PerspectiveCamera
        from prismtrace.camera.projection import setup_camera

        setup_camera(PerspectiveCamera(lookfrom=(0.0, 0.0, 0.0), lookat=(0.0, 0.0, -1.0)))

        # Corner of the pixel grid at the exact image center
        _, direction = _ray(8, 8, 16, 16, offset=(0.0, 0.0))
        assert np.allclose(direction, [0.0, 0.0, -1.0], atol=1e-5)

    def test_vertical_field_of_view(self):
        from prismtrace.camera import PerspectiveCamera
        from prismtrace.camera.projection import setup_camera

        setup_camera(
            PerspectiveCamera(lookfrom=(0.0, 0.0, 0.0), lookat=(0.0, 0.0, -1.0), vfov=90.0)
        )

        # Top edge of the image is 45 degrees above the axis
        _, direction = _ray(2, 3, 4, 4, offset=(0.0, 1.0))
        angle = math.degrees(math.atan2(direction[1], -direction[2]))
        assert angle == pytest.approx(45.0, abs=1e-3)

    def test_pixel_zero_is_bottom_left(self):
        from prismtrace.camera import PerspectiveCamera
        from prismtrace.camera.projection import setup_camera

        setup_camera(PerspectiveCamera(lookfrom=(0.0, 0.0, 0.0), lookat=(0.0, 0.0, -1.0)))

        _, direction = _ray(0, 0, 8, 8)
        assert direction[0] < 0.0
        assert direction[1] < 0.0


class TestOrthographicRays:
    """Tests for orthographic primary rays."""

    def test_rays_are_parallel(self):
        from prismtrace.camera import OrthographicCamera
        from prismtrace.camera.projection import setup_camera

        setup_camera(
            OrthographicCamera(
                lookfrom=(0.0, 0.0, 5.0), lookat=(0.0, 0.0, 0.0), view_height=4.0
            )
        )

        o1, d1 = _ray(0, 0, 8, 8)
        o2, d2 = _ray(7, 3, 8, 8)
        assert np.allclose(d1, [0.0, 0.0, -1.0], atol=1e-6)
        assert np.allclose(d1, d2, atol=1e-6)
        assert not np.allclose(o1, o2)
        # Origins lie on the view rectangle through lookfrom
        assert o1[2] == pytest.approx(5.0)
        assert o1[0] == pytest.approx(-2.0 + 0.25, abs=1e-5)
        assert o1[1] == pytest.approx(-2.0 + 0.25, abs=1e-5)

    def test_camera_ready_flags(self):
        from prismtrace.camera import OrthographicCamera
        from prismtrace.camera.projection import is_camera_ready, reset_camera, setup_camera

        assert not is_camera_ready()
        setup_camera(OrthographicCamera(lookfrom=(0.0, 0.0, 1.0), lookat=(0.0, 0.0, 0.0)))
        assert is_camera_ready()
        reset_camera()
        assert not is_camera_ready()
