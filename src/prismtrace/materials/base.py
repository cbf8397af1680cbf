"""Material kinds and the packed layout shared by all material types."""

import math
from collections.abc import Sequence
from enum import IntEnum
from typing import NamedTuple

from prismtrace.errors import SceneValidationError


class MaterialKind(IntEnum):
    """Closed set of surface types dispatched on by the shading kernel."""

    DIFFUSE = 0
    MIRROR = 1
    DIELECTRIC = 2
    EMISSIVE = 3


class PackedMaterial(NamedTuple):
    """A material flattened into the columns of the material table.

    ``params`` holds up to four kind-specific scalars.
    """

    kind: MaterialKind
    color: tuple[float, float, float]
    params: tuple[float, float, float, float]


def check_color(
    name: str,
    value: Sequence[float],
    upper: float | None = 1.0,
) -> tuple[float, float, float]:
    """Validate an RGB triple and return it as a tuple of floats.

    Components must be finite and non-negative, and no larger than upper
    when upper is given.
    """
    if len(value) != 3:
        raise SceneValidationError(f"{name} must have 3 components, got {len(value)}")
    color = tuple(float(c) for c in value)
    for c in color:
        if not math.isfinite(c) or c < 0.0 or (upper is not None and c > upper):
            bound = f"[0, {upper}]" if upper is not None else ">= 0"
            raise SceneValidationError(f"{name} components must be in {bound}, got {color}")
    return color
