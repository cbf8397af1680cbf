"""Renderer driving the integrator one block of rows at a time.

The Renderer owns a RenderSettings, prepares the render target and the
sample table, then renders the image in row blocks. Each block runs in
parallel on the Taichi worker pool; between blocks control returns to
Python, which is where progress is reported.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from prismtrace.config import RenderSettings
    >>> from prismtrace.core.renderer import Renderer
    >>> renderer = Renderer(RenderSettings(width=320, height=240))
    >>> renderer.render(callback=lambda done, total: print(f"{done}/{total} rows"))
    >>> image = renderer.get_image_numpy()
"""

import logging
import time
from collections.abc import Callable, Generator

import numpy as np
import numpy.typing as npt

from prismtrace.config import RenderSettings
from prismtrace.core.integrator import (
    clear_render_target,
    configure,
    get_normalized_image_numpy,
    render_rows,
    setup_render_target,
)
from prismtrace.core.sampler import MultiJitteredSampler
from prismtrace.output.export import apply_gamma, image_to_uint8, save_png

logger = logging.getLogger(__name__)

# The render target and sample table are shared device fields; this is the
# Renderer whose settings they currently hold.
_target_owner: "Renderer | None" = None

# Callback receives (rows_done, total_rows)
ProgressCallback = Callable[[int, int], None]


class Renderer:
    """Renders the current scene with a fixed set of settings.

    The scene (primitives, BVH, materials, lights, camera) must have been
    built before render() is called; see SceneManager.build.
    """

    def __init__(self, settings: RenderSettings) -> None:
        """Prepare the render target and sample table.

        Raises:
            ValueError: If the image exceeds the maximum supported size.
        """
        self._settings = settings
        self._rows_done = 0
        self._activate()

    def _activate(self) -> None:
        """Load this renderer's image size and settings onto the device."""
        global _target_owner
        setup_render_target(self._settings.width, self._settings.height)
        self._sampler = configure(self._settings)
        self._rows_done = 0
        _target_owner = self

    def _read_image(self) -> npt.NDArray[np.float32]:
        if _target_owner is not self:
            raise RuntimeError(
                "The render target holds another Renderer's image. Call render() again."
            )
        return get_normalized_image_numpy()

    @property
    def settings(self) -> RenderSettings:
        return self._settings

    @property
    def sampler(self) -> MultiJitteredSampler:
        """The sampler whose pattern table is loaded on the device."""
        return self._sampler

    @property
    def width(self) -> int:
        return self._settings.width

    @property
    def height(self) -> int:
        return self._settings.height

    @property
    def rows_done(self) -> int:
        """Number of rows rendered since the last reset."""
        return self._rows_done

    def reset(self) -> None:
        """Clear the image so the next render starts from black."""
        if _target_owner is self:
            clear_render_target()
        self._rows_done = 0

    def render(self, callback: ProgressCallback | None = None) -> None:
        """Render the whole image.

        Args:
            callback: Optional callback invoked after every row block with
                (rows_done, total_rows).
        """
        for rows_done, total in self.render_progressive():
            if callback is not None:
                callback(rows_done, total)

    def render_progressive(self) -> Generator[tuple[int, int], None, None]:
        """Render the image, yielding (rows_done, total_rows) after each block.

        Useful when the caller wants to interleave other work, such as
        updating a progress display or checking for cancellation, between
        blocks.

        The image size and sample table are loaded again first, since
        another Renderer may have replaced them since construction.
        """
        self._activate()
        height = self.height
        block = self._settings.rows_per_block
        start_time = time.perf_counter()
        logger.info(
            "Rendering %dx%d at %d samples/pixel, max depth %d",
            self.width,
            height,
            self._settings.samples_per_pixel,
            self._settings.max_depth,
        )

        for row_start in range(0, height, block):
            row_end = min(row_start + block, height)
            render_rows(row_start, row_end)
            self._rows_done = row_end
            logger.debug("Rendered rows %d-%d of %d", row_start, row_end, height)
            yield (self._rows_done, height)

        logger.info("Render finished in %.2fs", time.perf_counter() - start_time)

    def get_image_numpy(self, gamma: float = 1.0) -> npt.NDArray[np.float32]:
        """Get the rendered image as an array of shape (height, width, 3).

        Args:
            gamma: Gamma correction value. Default 1.0 (linear).

        Raises:
            ValueError: If gamma is not positive.
            RuntimeError: If another Renderer has used the render target since.
        """
        return apply_gamma(self._read_image(), gamma)

    def get_image_uint8(self, gamma: float | None = None) -> npt.NDArray[np.uint8]:
        """Get the rendered image as 8-bit RGB, gamma corrected.

        Args:
            gamma: Gamma correction value. Defaults to the settings' gamma.
        """
        gamma = self._settings.gamma if gamma is None else gamma
        return image_to_uint8(self._read_image(), gamma=gamma)

    def save_image(self, filepath: str, gamma: float | None = None) -> None:
        """Save the rendered image as a PNG file."""
        gamma = self._settings.gamma if gamma is None else gamma
        save_png(self._read_image(), filepath, gamma=gamma)

    def __repr__(self) -> str:
        return (
            f"Renderer(width={self.width}, height={self.height}, "
            f"samples={self._settings.samples_per_pixel}, rows_done={self._rows_done})"
        )
