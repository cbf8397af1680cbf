"""Tests for material definitions and their kernel helpers.

Tests cover:
- Validation of material parameters
- Packing into the material table
- Lambertian and Blinn-Phong response
- Mirror reflection
- Dielectric reflect/refract split and total internal reflection
"""

import math

import pytest
import taichi as ti


class TestMaterialValidation:
    """Tests for host-side material validation."""

    @pytest.mark.parametrize(
        "factory",
        [
            lambda m: m.DiffuseMaterial((1.2, 0.0, 0.0)),
            lambda m: m.DiffuseMaterial((0.5, 0.5)),
            lambda m: m.DiffuseMaterial((0.5, 0.5, 0.5), diffuse_weight=-1.0),
            lambda m: m.DiffuseMaterial((0.5, 0.5, 0.5), shininess=0.5),
            lambda m: m.MirrorMaterial((0.5, float("nan"), 0.5)),
            lambda m: m.DielectricMaterial(ior=0.9),
            lambda m: m.DielectricMaterial(transmittance=(1.0, 1.0, 2.0)),
            lambda m: m.EmissiveMaterial((-1.0, 0.0, 0.0)),
        ],
    )
    def test_invalid_parameters(self, factory):
        import prismtrace.materials as materials
        from prismtrace.errors import SceneValidationError

        with pytest.raises(SceneValidationError):
            factory(materials)

    def test_emissive_may_exceed_one(self):
        from prismtrace.materials import EmissiveMaterial

        assert EmissiveMaterial((4.0, 4.0, 4.0)).color == (4.0, 4.0, 4.0)

    def test_pack_layouts(self):
        from prismtrace.materials import (
            DielectricMaterial,
            DiffuseMaterial,
            MaterialKind,
            MirrorMaterial,
        )

        diffuse = DiffuseMaterial((0.2, 0.4, 0.6), 0.8, 0.3, 16.0).pack()
        assert diffuse.kind == MaterialKind.DIFFUSE
        assert diffuse.params == (0.8, 0.3, 16.0, 0.0)

        mirror = MirrorMaterial((0.9, 0.9, 0.9)).pack()
        assert mirror.kind == MaterialKind.MIRROR
        assert mirror.color == (0.9, 0.9, 0.9)

        glass = DielectricMaterial(1.33).pack()
        assert glass.kind == MaterialKind.DIELECTRIC
        assert glass.params[0] == 1.33


class TestDiffuseResponse:
    """Tests for eval_diffuse."""

    def _eval(self, to_light, ks=0.0, shininess=32.0):
        from prismtrace.core.ray import vec3
        from prismtrace.materials.diffuse import eval_diffuse

        result = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel(lx: ti.f32, ly: ti.f32, lz: ti.f32, specular: ti.f32, exponent: ti.f32):
            result[None] = eval_diffuse(
                vec3(0.5, 0.25, 1.0),
                1.0,
                specular,
                exponent,
                vec3(0.0, 1.0, 0.0),
                ti.math.normalize(vec3(lx, ly, lz)),
                vec3(0.0, 1.0, 0.0),
            )

        test_kernel(*to_light, ks, shininess)
        return result[None]

    def test_lambert_cosine(self):
        """Test that response scales with the cosine to the light."""
        overhead = self._eval((0.0, 1.0, 0.0))
        slanted = self._eval((1.0, 1.0, 0.0))
        assert abs(overhead[0] - 0.5) < 1e-6
        assert abs(overhead[2] - 1.0) < 1e-6
        assert abs(slanted[0] - 0.5 * math.cos(math.pi / 4)) < 1e-5

    def test_light_below_surface(self):
        """Test that lights behind the surface contribute nothing."""
        result = self._eval((0.0, -1.0, 0.0), ks=1.0)
        assert result[0] == 0.0 and result[1] == 0.0 and result[2] == 0.0

    def test_specular_highlight(self):
        """Test that a mirror-aligned light adds the full specular weight."""
        plain = self._eval((0.0, 1.0, 0.0))
        shiny = self._eval((0.0, 1.0, 0.0), ks=0.5)
        for c in range(3):
            assert abs((shiny[c] - plain[c]) - 0.5) < 1e-5


class TestMirror:
    """Tests for scatter_mirror."""

    def test_reflection_and_attenuation(self):
        from prismtrace.core.ray import vec3
        from prismtrace.materials.mirror import scatter_mirror

        direction = ti.Vector.field(3, dtype=ti.f32, shape=())
        attenuation = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            d, a = scatter_mirror(vec3(0.9, 0.8, 0.7), vec3(1.0, -1.0, 0.0), vec3(0.0, 1.0, 0.0))
            direction[None] = d
            attenuation[None] = a

        test_kernel()
        d = direction[None]
        assert abs(d[0] - math.sqrt(0.5)) < 1e-5
        assert abs(d[1] - math.sqrt(0.5)) < 1e-5
        assert abs(attenuation[None][1] - 0.8) < 1e-6


class TestDielectricSplit:
    """Tests for split_dielectric."""

    def _split(self, incident, front_face, ior=1.5, transmittance=(1.0, 1.0, 1.0)):
        from prismtrace.core.ray import vec3
        from prismtrace.materials.dielectric import split_dielectric

        reflected_weight = ti.Vector.field(3, dtype=ti.f32, shape=())
        refracted_dir = ti.Vector.field(3, dtype=ti.f32, shape=())
        refracted_weight = ti.Vector.field(3, dtype=ti.f32, shape=())
        refracted = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel(
            ix: ti.f32, iy: ti.f32, iz: ti.f32, front: ti.i32, eta: ti.f32,
            tr: ti.f32, tg: ti.f32, tb: ti.f32,
        ):
            _, rw, td, tw, ok = split_dielectric(
                eta, vec3(tr, tg, tb), vec3(ix, iy, iz), vec3(0.0, 1.0, 0.0), front
            )
            reflected_weight[None] = rw
            refracted_dir[None] = td
            refracted_weight[None] = tw
            refracted[None] = ok

        test_kernel(*incident, front_face, ior, *transmittance)
        return (
            reflected_weight[None],
            refracted_dir[None],
            refracted_weight[None],
            refracted[None],
        )

    def test_head_on_entry_conserves_energy(self):
        """Test reflected plus refracted weights sum to one for clear glass."""
        rw, td, tw, ok = self._split((0.0, -1.0, 0.0), front_face=1)
        assert ok == 1
        assert abs(rw[0] - 0.04) < 1e-5
        assert abs(tw[0] - 0.96) < 1e-5
        assert abs(td[1] + 1.0) < 1e-5

    def test_transmittance_tints_refraction(self):
        _, _, tw, _ = self._split((0.0, -1.0, 0.0), front_face=1, transmittance=(1.0, 0.5, 0.0))
        assert abs(tw[1] - 0.48) < 1e-5
        assert abs(tw[2]) < 1e-6

    def test_total_internal_reflection(self):
        """Test a grazing exit from glass reflects everything."""
        rw, _, tw, ok = self._split((1.0, -0.2, 0.0), front_face=0)
        assert ok == 0
        assert abs(rw[0] - 1.0) < 1e-6
        assert tw[0] == 0.0 and tw[1] == 0.0 and tw[2] == 0.0

    def test_refraction_bends_toward_normal_on_entry(self):
        _, td, _, ok = self._split((1.0, -1.0, 0.0), front_face=1)
        assert ok == 1
        assert td[0] < math.sqrt(0.5)
        assert td[1] < 0.0
