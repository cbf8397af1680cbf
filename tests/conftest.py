"""Pytest configuration for prismtrace tests.

This module provides shared fixtures for all test modules, including
Taichi initialization which must happen once per session.
"""

import pytest
import taichi as ti


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Using session scope prevents multiple ti.init() calls which can cause
    segmentation faults due to Taichi runtime conflicts.
    """
    ti.init(arch=ti.cpu, random_seed=42)
    yield


@pytest.fixture(autouse=True)
def clear_all_scene_data():
    """Clear scene, material, light, camera and render state around each test."""
    # Imported here so field allocation happens after ti.init
    from prismtrace.camera.projection import reset_camera
    from prismtrace.core.integrator import reset_integrator
    from prismtrace.materials.storage import clear_materials
    from prismtrace.scene.intersection import clear_scene
    from prismtrace.scene.lights import clear_lights

    def _clear_all():
        clear_scene()
        clear_materials()
        clear_lights()
        reset_camera()
        reset_integrator()

    _clear_all()
    yield
    _clear_all()
