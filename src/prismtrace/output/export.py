"""Image export utilities.

Converts the renderer's linear float images to 8-bit sRGB-ish arrays and
writes them to disk with Pillow.

Example:
    >>> from prismtrace.output.export import save_png
    >>> save_png(renderer.get_image_numpy(), "render.png", gamma=2.2)
"""

import logging

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage

logger = logging.getLogger(__name__)


def apply_gamma(
    image: npt.NDArray[np.float32],
    gamma: float = 2.2,
) -> npt.NDArray[np.float32]:
    """Apply gamma correction for display.

    Args:
        image: Linear image array of shape (H, W, 3).
        gamma: Gamma value (default 2.2 for sRGB).

    Returns:
        Gamma encoded image clamped to [0, 1].

    Raises:
        ValueError: If gamma is not positive.
    """
    if gamma <= 0.0:
        raise ValueError(f"gamma must be positive, got {gamma}")

    # Clamp before the power to avoid NaN from negative values
    image = np.clip(np.nan_to_num(image, nan=0.0, posinf=1.0, neginf=0.0), 0.0, 1.0)
    if gamma == 1.0:
        return image.astype(np.float32)
    return np.power(image, 1.0 / gamma).astype(np.float32)


def image_to_uint8(
    image: npt.NDArray[np.float32],
    *,
    gamma: float = 2.2,
) -> npt.NDArray[np.uint8]:
    """Convert a linear float image to uint8.

    Returns:
        8-bit image array of shape (H, W, 3) with dtype uint8.
    """
    encoded = apply_gamma(image, gamma)
    return (encoded * 255.0 + 0.5).astype(np.uint8)


def save_png(
    image: npt.NDArray[np.float32],
    filepath: str,
    *,
    gamma: float = 2.2,
) -> None:
    """Save a linear float image as an 8-bit RGB PNG.

    Raises:
        ValueError: If the image is not shaped (H, W, 3).
    """
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected an (H, W, 3) image, got shape {image.shape}")

    pil_image = PILImage.fromarray(image_to_uint8(image, gamma=gamma))
    pil_image.save(filepath)
    logger.info("Saved %dx%d image to %s", image.shape[1], image.shape[0], filepath)
