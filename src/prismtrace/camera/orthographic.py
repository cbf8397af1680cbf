"""Orthographic camera model.

Rays start on a view rectangle through lookfrom, perpendicular to the view
direction, and all travel along that direction. There is no foreshortening
and surfaces parallel to the view direction have zero projected area.
"""

import math
from dataclasses import dataclass

import numpy as np

from prismtrace.camera.perspective import ProjectionKind, Viewport, camera_basis
from prismtrace.errors import SceneValidationError


@dataclass(frozen=True)
class OrthographicCamera:
    """Configuration for a parallel-projection camera.

    Attributes:
        lookfrom: Center of the view rectangle in world space.
        lookat: Any point along the view direction.
        vup: Up direction used to orient the camera.
        view_height: World-space height of the view rectangle.
        aspect_ratio: Width divided by height of the output image.
    """

    lookfrom: tuple[float, float, float]
    lookat: tuple[float, float, float]
    vup: tuple[float, float, float] = (0.0, 1.0, 0.0)
    view_height: float = 2.0
    aspect_ratio: float = 1.0

    def __post_init__(self) -> None:
        if not math.isfinite(self.view_height) or self.view_height <= 0.0:
            raise SceneValidationError(f"view_height must be positive, got {self.view_height}")
        if not math.isfinite(self.aspect_ratio) or self.aspect_ratio <= 0.0:
            raise SceneValidationError(f"aspect_ratio must be positive, got {self.aspect_ratio}")
        camera_basis(self.lookfrom, self.lookat, self.vup)

    def viewport(self) -> Viewport:
        u, v, w = camera_basis(self.lookfrom, self.lookat, self.vup)
        origin = np.asarray(self.lookfrom, dtype=np.float64)
        horizontal = self.aspect_ratio * self.view_height * u
        vertical = self.view_height * v
        lower_left = origin - horizontal / 2.0 - vertical / 2.0
        return Viewport(ProjectionKind.ORTHOGRAPHIC, origin, lower_left, horizontal, vertical, -w)
