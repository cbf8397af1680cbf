"""Tests for correlated multi-jittered sample patterns.

Tests cover:
- Every offset in [0, 1)^2
- One sample per grid cell (stratification)
- One sample per thin row and column (n-rooks)
- Determinism for a fixed seed
- Pattern selection per pixel
"""

import numpy as np
import pytest


class TestPatternDistribution:
    """Tests for the distribution properties of generated patterns."""

    @pytest.mark.parametrize("n", [1, 2, 3, 4, 8, 16])
    def test_offsets_in_unit_square(self, n):
        from prismtrace.core.sampler import MultiJitteredSampler

        patterns = MultiJitteredSampler(n, seed=3, num_patterns=64).patterns
        assert patterns.shape == (64, n * n, 2)
        assert patterns.dtype == np.float32
        assert np.all(patterns >= 0.0)
        assert np.all(patterns < 1.0)

    @pytest.mark.parametrize("n", [2, 4, 7, 16])
    def test_one_sample_per_cell(self, n):
        from prismtrace.core.sampler import MultiJitteredSampler

        patterns = MultiJitteredSampler(n, seed=11, num_patterns=32).patterns
        for pattern in patterns:
            cells = np.floor(pattern * n).astype(int)
            # Sample s sits in row s // n, column s % n
            expected = np.array([(s % n, s // n) for s in range(n * n)])
            assert np.array_equal(cells, expected)

    @pytest.mark.parametrize("n", [2, 4, 7, 16])
    def test_n_rooks(self, n):
        from prismtrace.core.sampler import MultiJitteredSampler

        patterns = MultiJitteredSampler(n, seed=5, num_patterns=32).patterns
        for pattern in patterns:
            columns = np.floor(pattern[:, 0].astype(np.float64) * n * n).astype(int)
            rows = np.floor(pattern[:, 1].astype(np.float64) * n * n).astype(int)
            assert sorted(columns.tolist()) == list(range(n * n))
            assert sorted(rows.tolist()) == list(range(n * n))

    def test_single_sample_level(self):
        from prismtrace.core.sampler import MultiJitteredSampler

        sampler = MultiJitteredSampler(1, seed=0, num_patterns=8)
        assert sampler.samples_per_pixel == 1
        assert sampler.samples_for_pixel(0, 0, 4).shape == (1, 2)


class TestDeterminism:
    """Tests for reproducibility."""

    def test_same_seed_same_table(self):
        from prismtrace.core.sampler import MultiJitteredSampler

        a = MultiJitteredSampler(4, seed=42, num_patterns=128).patterns
        b = MultiJitteredSampler(4, seed=42, num_patterns=128).patterns
        assert np.array_equal(a, b)

    def test_different_seed_different_table(self):
        from prismtrace.core.sampler import MultiJitteredSampler

        a = MultiJitteredSampler(4, seed=1, num_patterns=16).patterns
        b = MultiJitteredSampler(4, seed=2, num_patterns=16).patterns
        assert not np.array_equal(a, b)


class TestPixelPatterns:
    """Tests for pattern selection per pixel."""

    def test_adjacent_pixels_differ(self):
        from prismtrace.core.sampler import MultiJitteredSampler

        sampler = MultiJitteredSampler(4, seed=9, num_patterns=1024)
        left = sampler.samples_for_pixel(10, 20, 64)
        right = sampler.samples_for_pixel(11, 20, 64)
        above = sampler.samples_for_pixel(10, 21, 64)
        assert not np.array_equal(left, right)
        assert not np.array_equal(left, above)

    def test_pattern_index_wraps(self):
        from prismtrace.core.sampler import MultiJitteredSampler

        sampler = MultiJitteredSampler(2, seed=0, num_patterns=16)
        assert sampler.pattern_index(3, 1, 8) == 11
        assert sampler.pattern_index(0, 2, 8) == 0

    def test_vertical_neighbours_differ_when_width_wraps(self):
        """Test widths that are multiples of the table size still vary per row."""
        from prismtrace.core.sampler import MultiJitteredSampler, pattern_stride

        sampler = MultiJitteredSampler(2, seed=0, num_patterns=16)
        assert pattern_stride(32, 16) == 33
        assert pattern_stride(30, 16) == 30
        assert sampler.pattern_index(5, 0, 32) != sampler.pattern_index(5, 1, 32)

    def test_samples_for_pixel_returns_copy(self):
        from prismtrace.core.sampler import MultiJitteredSampler

        sampler = MultiJitteredSampler(2, seed=0, num_patterns=4)
        offsets = sampler.samples_for_pixel(0, 0, 2)
        offsets[:] = 0.0
        assert np.any(sampler.patterns[0] != 0.0)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"samples_level": 0},
            {"samples_level": 2, "num_patterns": 0},
            {"samples_level": 2, "seed": -1},
        ],
    )
    def test_invalid_arguments(self, kwargs):
        from prismtrace.core.sampler import MultiJitteredSampler

        with pytest.raises(ValueError):
            MultiJitteredSampler(**kwargs)
