"""Perspective camera model.

The camera builds an orthonormal basis (u, v, w) from the view parameters:
- w: points from lookat toward lookfrom (opposite view direction)
- u: points right in the image plane
- v: points up in the image plane

All primary rays start at lookfrom and pass through a virtual image plane
at unit distance, whose height follows from the vertical field of view.

Example:
    >>> camera = PerspectiveCamera(
    ...     lookfrom=(0.0, 0.0, 0.0),
    ...     lookat=(0.0, 0.0, -1.0),
    ...     vfov=45.0,
    ...     aspect_ratio=16.0 / 9.0,
    ... )
    >>> viewport = camera.viewport()
"""

import math
from dataclasses import dataclass
from enum import IntEnum
from typing import NamedTuple

import numpy as np
import numpy.typing as npt

from prismtrace.errors import SceneValidationError
from prismtrace.geometry.aabb import check_finite


class ProjectionKind(IntEnum):
    ORTHOGRAPHIC = 0
    PERSPECTIVE = 1


class Viewport(NamedTuple):
    """Image-plane geometry shared by both projections.

    A sample at normalized image coordinates (s, t) lies at
    ``lower_left + s * horizontal + t * vertical``. Perspective rays start at
    origin and aim at that point; orthographic rays start at that point and
    travel along direction.
    """

    kind: ProjectionKind
    origin: npt.NDArray[np.float64]
    lower_left: npt.NDArray[np.float64]
    horizontal: npt.NDArray[np.float64]
    vertical: npt.NDArray[np.float64]
    direction: npt.NDArray[np.float64]


def camera_basis(
    lookfrom: tuple[float, float, float],
    lookat: tuple[float, float, float],
    vup: tuple[float, float, float],
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Orthonormal camera basis (u, v, w) with w pointing backward.

    Raises:
        SceneValidationError: If lookfrom equals lookat or vup is parallel
            to the view direction.
    """
    check_finite("Camera lookfrom", lookfrom)
    check_finite("Camera lookat", lookat)
    check_finite("Camera vup", vup)

    w = np.asarray(lookfrom, dtype=np.float64) - np.asarray(lookat, dtype=np.float64)
    w_length = np.linalg.norm(w)
    if w_length < 1e-12:
        raise SceneValidationError("Camera lookfrom and lookat must differ")
    w = w / w_length

    u = np.cross(np.asarray(vup, dtype=np.float64), w)
    u_length = np.linalg.norm(u)
    if u_length < 1e-12:
        raise SceneValidationError("Camera vup must not be parallel to the view direction")
    u = u / u_length

    v = np.cross(w, u)
    return u, v, w


@dataclass(frozen=True)
class PerspectiveCamera:
    """Configuration for a pinhole (perspective) camera.

    Attributes:
        lookfrom: Camera position in world space.
        lookat: Point the camera is looking at.
        vup: Up direction used to orient the camera.
        vfov: Vertical field of view in degrees, in (0, 180).
        aspect_ratio: Width divided by height of the output image.
    """

    lookfrom: tuple[float, float, float]
    lookat: tuple[float, float, float]
    vup: tuple[float, float, float] = (0.0, 1.0, 0.0)
    vfov: float = 45.0
    aspect_ratio: float = 1.0

    def __post_init__(self) -> None:
        if not 0.0 < self.vfov < 180.0:
            raise SceneValidationError(f"vfov must be in (0, 180) degrees, got {self.vfov}")
        if not math.isfinite(self.aspect_ratio) or self.aspect_ratio <= 0.0:
            raise SceneValidationError(f"aspect_ratio must be positive, got {self.aspect_ratio}")
        camera_basis(self.lookfrom, self.lookat, self.vup)

    def viewport(self) -> Viewport:
        u, v, w = camera_basis(self.lookfrom, self.lookat, self.vup)
        viewport_height = 2.0 * math.tan(math.radians(self.vfov) / 2.0)
        viewport_width = self.aspect_ratio * viewport_height

        origin = np.asarray(self.lookfrom, dtype=np.float64)
        horizontal = viewport_width * u
        vertical = viewport_height * v
        # Image plane sits one unit in front of the eye
        lower_left = origin - w - horizontal / 2.0 - vertical / 2.0
        return Viewport(ProjectionKind.PERSPECTIVE, origin, lower_left, horizontal, vertical, -w)
