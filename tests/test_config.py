"""Tests for render settings."""

import pytest


class TestRenderSettings:
    """Tests for RenderSettings validation and conversion."""

    def test_defaults(self):
        from prismtrace.config import RenderSettings

        settings = RenderSettings()
        assert settings.samples_per_pixel == 4
        assert settings.aspect_ratio == pytest.approx(640 / 480)
        assert settings.background_top == (0.0, 0.0, 0.0)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"width": 0},
            {"height": -5},
            {"samples_level": 0},
            {"samples_level": 17},
            {"max_depth": -1},
            {"max_depth": 9},
            {"seed": -1},
            {"ambient": -0.1},
            {"background_top": (1.0, -1.0, 0.0)},
            {"background_bottom": (1.0, 1.0)},
            {"rows_per_block": 0},
            {"num_patterns": 0},
            {"num_patterns": 5000},
            {"gamma": 0.0},
        ],
    )
    def test_invalid_values(self, kwargs):
        from prismtrace.config import RenderSettings

        with pytest.raises(ValueError):
            RenderSettings(**kwargs)

    def test_from_dict_round_trip(self):
        from prismtrace.config import RenderSettings

        data = {"width": 100, "height": 50, "background_top": [0.1, 0.2, 0.3]}
        settings = RenderSettings.from_dict(data)
        assert settings.background_top == (0.1, 0.2, 0.3)
        assert RenderSettings.from_dict(settings.to_dict()) == settings

    def test_from_dict_rejects_unknown_keys(self):
        from prismtrace.config import RenderSettings

        with pytest.raises(ValueError, match="Unknown render settings: spp"):
            RenderSettings.from_dict({"spp": 4})

    def test_settings_are_frozen(self):
        from dataclasses import FrozenInstanceError

        from prismtrace.config import RenderSettings

        with pytest.raises(FrozenInstanceError):
            RenderSettings().width = 10


class TestInitBackend:
    """Tests for backend argument validation."""

    def test_unknown_arch(self):
        from prismtrace.config import init_backend

        with pytest.raises(ValueError, match="Unknown arch"):
            init_backend(arch="tpu")

    def test_bad_thread_count(self):
        from prismtrace.config import init_backend

        with pytest.raises(ValueError, match="num_threads"):
            init_backend(arch="cpu", num_threads=0)
