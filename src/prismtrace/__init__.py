"""Taichi-based Whitted-style ray tracer.

This package renders scenes of spheres, planes and triangles with direct
lighting, hard shadows, mirror reflection and dielectric refraction:
- Median-split BVH built on the host with NumPy, traversed in Taichi kernels
- Moller-Trumbore triangle intersection and robust sphere intersection
- Correlated multi-jittered anti-aliasing
- Orthographic and perspective cameras
- Row-block parallel rendering with progress reporting

Subpackages:
    core: Rays, sampling, the shading integrator and the renderer
    geometry: Primitive shapes, bounding boxes and BVH construction
    materials: Diffuse, mirror, dielectric and emissive surfaces
    scene: Primitive storage, lights and the scene manager
    camera: Orthographic and perspective ray generation
    output: Gamma correction and PNG export

Modules that allocate Taichi fields (scene storage, the integrator, camera
state) must be imported after ``init_backend`` (or ``ti.init``) has run.
"""

import logging

from prismtrace.config import RenderSettings, init_backend
from prismtrace.errors import SceneValidationError

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "RenderSettings",
    "SceneValidationError",
    "init_backend",
]
