"""Correlated multi-jittered sample patterns.

A pattern for an N x N pixel subdivision places exactly one sample in each
of the N^2 grid cells and, inside the grid, one sample in each of the N^2
thin columns and rows (the n-rooks property). Patterns start from the
canonical multi-jittered arrangement: cell (j, i) holds a sample whose x
sub-column is j and whose y sub-row is i. The sub-column assignment is then
shuffled with one permutation shared by every column, and the sub-row
assignment with one permutation shared by every row, which is what makes the
pattern "correlated". Each sample is finally jittered inside its sub-cell.

Patterns are produced host-side with NumPy from a seeded generator and
uploaded once into a table. Pixel (x, y) reads pattern
``(y * stride + x) % num_patterns`` where stride is the image width (bumped
by one when the width is a multiple of the table size), so horizontally and
vertically adjacent pixels always use different, independent patterns while
the whole image stays reproducible for a fixed seed.

Example:
    >>> sampler = MultiJitteredSampler(samples_level=4, seed=7, num_patterns=64)
    >>> offsets = sampler.samples_for_pixel(10, 3, width=320)
    >>> offsets.shape
    (16, 2)
"""

import numpy as np
import numpy.typing as npt

# Keeps each jittered offset strictly inside its sub-cell once cast to float32
_CELL_MARGIN = 1.0 / 4096.0


def _jitter_fraction(
    permutation: npt.NDArray[np.int64],
    jitter: npt.NDArray[np.float64],
    n: int,
) -> npt.NDArray[np.float64]:
    return (permutation + np.clip(jitter, _CELL_MARGIN, 1.0 - _CELL_MARGIN)) / n


def generate_patterns(
    samples_level: int,
    num_patterns: int,
    rng: np.random.Generator,
) -> npt.NDArray[np.float32]:
    """Generate a batch of correlated multi-jittered patterns.

    Args:
        samples_level: N, the side of the sample grid.
        num_patterns: Number of independent patterns to produce.
        rng: NumPy generator supplying permutations and jitter.

    Returns:
        Array of shape (num_patterns, N*N, 2) with offsets in [0, 1)^2.
        Sample s of a pattern lies in grid cell (row s // N, column s % N).
    """
    n = samples_level
    base = np.tile(np.arange(n), (num_patterns, 1))
    # One x shuffle per pattern shared by all columns, one y shuffle shared by all rows
    perm_x = rng.permuted(base, axis=1)
    perm_y = rng.permuted(base, axis=1)
    jitter = rng.random((num_patterns, n, n, 2))

    column = np.arange(n)[np.newaxis, np.newaxis, :]
    row = np.arange(n)[np.newaxis, :, np.newaxis]

    # Axis layout: [pattern, row j, column i]
    fx = _jitter_fraction(perm_x[:, :, np.newaxis], jitter[..., 0], n)
    fy = _jitter_fraction(perm_y[:, np.newaxis, :], jitter[..., 1], n)
    x = (column + fx) / n
    y = (row + fy) / n

    patterns = np.stack([x, y], axis=-1).reshape(num_patterns, n * n, 2)
    return patterns.astype(np.float32)


def pattern_stride(width: int, num_patterns: int) -> int:
    """Row stride used to linearize pixel indices before wrapping.

    Equals width unless width is a multiple of num_patterns, where it is
    width + 1 so that vertically adjacent pixels still differ.
    """
    return width + 1 if width % num_patterns == 0 else width


class MultiJitteredSampler:
    """A deterministic table of correlated multi-jittered patterns.

    Attributes:
        samples_level: N, the side of the per-pixel sample grid.
        seed: Seed of the generator that produced the table.
        num_patterns: Number of patterns in the table.
    """

    def __init__(self, samples_level: int, seed: int = 0, num_patterns: int = 1024) -> None:
        if samples_level <= 0:
            raise ValueError(f"samples_level must be positive, got {samples_level}")
        if num_patterns <= 0:
            raise ValueError(f"num_patterns must be positive, got {num_patterns}")
        if seed < 0:
            raise ValueError(f"seed must be non-negative, got {seed}")

        self.samples_level = samples_level
        self.seed = seed
        self.num_patterns = num_patterns
        self._patterns = generate_patterns(
            samples_level, num_patterns, np.random.default_rng(seed)
        )

    @property
    def samples_per_pixel(self) -> int:
        """Number of offsets in each pattern."""
        return self.samples_level * self.samples_level

    @property
    def patterns(self) -> npt.NDArray[np.float32]:
        """The full pattern table, shape (num_patterns, N*N, 2)."""
        return self._patterns

    def pattern_index(self, pixel_x: int, pixel_y: int, width: int) -> int:
        """Index of the pattern used by a pixel."""
        return (pixel_y * pattern_stride(width, self.num_patterns) + pixel_x) % self.num_patterns

    def samples_for_pixel(self, pixel_x: int, pixel_y: int, width: int) -> npt.NDArray[np.float32]:
        """Return the N*N sub-pixel offsets used for one pixel.

        Args:
            pixel_x: Pixel column.
            pixel_y: Pixel row (0 = bottom).
            width: Image width, used to linearize the pixel index.

        Returns:
            A fresh array of shape (N*N, 2) with offsets in [0, 1)^2.
        """
        return self._patterns[self.pattern_index(pixel_x, pixel_y, width)].copy()

    def __repr__(self) -> str:
        return (
            f"MultiJitteredSampler(samples_level={self.samples_level}, seed={self.seed}, "
            f"num_patterns={self.num_patterns})"
        )
