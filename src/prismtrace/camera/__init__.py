"""Camera module for view and primary ray generation.

Components:
    perspective: Pinhole camera with converging rays and a vertical FOV
    orthographic: Parallel-projection camera with a fixed view rectangle
    projection: Taichi camera state and generate_ray (import after ti.init)

Ray generation uses normalized image coordinates:
    s in [0, 1]: left to right across image
    t in [0, 1]: bottom to top across image
"""

from .orthographic import OrthographicCamera
from .perspective import PerspectiveCamera, ProjectionKind, Viewport, camera_basis

Camera = PerspectiveCamera | OrthographicCamera

__all__ = [
    "Camera",
    "OrthographicCamera",
    "PerspectiveCamera",
    "ProjectionKind",
    "Viewport",
    "camera_basis",
]
