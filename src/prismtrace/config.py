"""Render configuration and Taichi backend initialization.

RenderSettings collects every knob the integrator and renderer read. It is a
frozen dataclass validated on construction, so a settings object that exists
is always renderable.

Example:
    >>> from prismtrace.config import RenderSettings, init_backend
    >>> init_backend(arch="cpu", num_threads=8)
    >>> settings = RenderSettings(width=320, height=240, samples_level=2)
    >>> settings.samples_per_pixel
    4
"""

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any

import taichi as ti

logger = logging.getLogger(__name__)

# Upper bound on N for N x N samples per pixel (sample table width is N^2)
MAX_SAMPLES_LEVEL = 16

# Upper bound on the shading depth; sizes the per-ray shading stack
MAX_TRACE_DEPTH = 8

# Upper bound on the number of distinct sample patterns kept on the device
MAX_PATTERNS = 4096

_ARCHES = ("cpu", "gpu", "cuda", "vulkan", "metal")


def _check_color(name: str, value: tuple[float, float, float]) -> None:
    if len(value) != 3:
        raise ValueError(f"{name} must have 3 components, got {len(value)}")
    for component in value:
        if not math.isfinite(component) or component < 0.0:
            raise ValueError(f"{name} components must be finite and >= 0, got {value}")


@dataclass(frozen=True)
class RenderSettings:
    """Settings for one render.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        samples_level: N, the side of the per-pixel sample grid. Each pixel
            averages N * N stratified samples.
        max_depth: Maximum number of specular bounces. A ray at this depth is
            still shaded but spawns no reflected or refracted rays.
        seed: Seed for the sample pattern table. Equal seeds give
            byte-identical images.
        ambient: Ambient term added to diffuse surfaces, scaled by albedo.
        background_top: Background color for rays pointing straight up.
        background_bottom: Background color for rays pointing straight down.
            Directions in between blend linearly on the y component.
        rows_per_block: Image rows rendered per kernel launch. Progress is
            reported once per block.
        num_patterns: Number of distinct sample patterns generated.
        gamma: Gamma used when exporting 8-bit images.
    """

    width: int = 640
    height: int = 480
    samples_level: int = 2
    max_depth: int = 5
    seed: int = 0
    ambient: float = 0.0
    background_top: tuple[float, float, float] = (0.0, 0.0, 0.0)
    background_bottom: tuple[float, float, float] = (0.0, 0.0, 0.0)
    rows_per_block: int = 16
    num_patterns: int = 1024
    gamma: float = 2.2

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(
                f"Image dimensions must be positive, got {self.width}x{self.height}"
            )
        if not 1 <= self.samples_level <= MAX_SAMPLES_LEVEL:
            raise ValueError(
                f"samples_level must be in [1, {MAX_SAMPLES_LEVEL}], got {self.samples_level}"
            )
        if not 0 <= self.max_depth <= MAX_TRACE_DEPTH:
            raise ValueError(
                f"max_depth must be in [0, {MAX_TRACE_DEPTH}], got {self.max_depth}"
            )
        if self.seed < 0:
            raise ValueError(f"seed must be non-negative, got {self.seed}")
        if not math.isfinite(self.ambient) or self.ambient < 0.0:
            raise ValueError(f"ambient must be finite and >= 0, got {self.ambient}")
        _check_color("background_top", self.background_top)
        _check_color("background_bottom", self.background_bottom)
        if self.rows_per_block <= 0:
            raise ValueError(f"rows_per_block must be positive, got {self.rows_per_block}")
        if not 1 <= self.num_patterns <= MAX_PATTERNS:
            raise ValueError(
                f"num_patterns must be in [1, {MAX_PATTERNS}], got {self.num_patterns}"
            )
        if not math.isfinite(self.gamma) or self.gamma <= 0.0:
            raise ValueError(f"gamma must be positive, got {self.gamma}")

    @property
    def samples_per_pixel(self) -> int:
        """Number of samples averaged per pixel."""
        return self.samples_level * self.samples_level

    @property
    def aspect_ratio(self) -> float:
        """Image width divided by height."""
        return self.width / self.height

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RenderSettings":
        """Build settings from a plain mapping, e.g. parsed JSON.

        Raises:
            ValueError: If the mapping has keys that are not settings, or if
                any value fails validation.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown render settings: {', '.join(unknown)}")

        values = dict(data)
        for key in ("background_top", "background_bottom"):
            if key in values:
                values[key] = tuple(float(c) for c in values[key])
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        """Return the settings as a plain dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}


def init_backend(
    arch: str = "cpu",
    num_threads: int | None = None,
    debug: bool = False,
) -> None:
    """Initialize the Taichi runtime.

    Must run before any module that allocates fields is imported.

    Args:
        arch: Backend name ("cpu", "gpu", "cuda", "vulkan" or "metal").
        num_threads: Size of the CPU worker pool. Defaults to Taichi's choice
            (one thread per core).
        debug: Enable Taichi's bounds-checking debug mode.

    Raises:
        ValueError: If arch is unknown or num_threads is not positive.
    """
    if arch not in _ARCHES:
        raise ValueError(f"Unknown arch {arch!r}, expected one of {_ARCHES}")

    options: dict[str, Any] = {"arch": getattr(ti, arch), "debug": debug}
    if num_threads is not None:
        if num_threads <= 0:
            raise ValueError(f"num_threads must be positive, got {num_threads}")
        options["cpu_max_num_threads"] = num_threads

    ti.init(**options)
    logger.info("Initialized Taichi backend arch=%s threads=%s", arch, num_threads or "auto")
