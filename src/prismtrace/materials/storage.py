"""GPU-side material table.

Every material, whatever its kind, occupies one row of three parallel
fields: its kind, a color and four kind-specific parameters. A material id
is a row index. Rows are written once per scene build.

Column meaning by kind:
    DIFFUSE:    color = albedo, params = (kd, ks, shininess, 0)
    MIRROR:     color = reflectance
    DIELECTRIC: color = transmittance, params = (ior, 0, 0, 0)
    EMISSIVE:   color = emitted radiance
"""

from collections.abc import Sequence

import numpy as np
import taichi as ti
import taichi.math as tm

from prismtrace.core.ray import vec3
from prismtrace.materials.base import PackedMaterial

MAX_MATERIALS = 256

material_kinds = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
material_colors = ti.Vector.field(3, dtype=ti.f32, shape=MAX_MATERIALS)
material_params = ti.Vector.field(4, dtype=ti.f32, shape=MAX_MATERIALS)
num_materials = ti.field(dtype=ti.i32, shape=())


def upload_materials(materials: Sequence[PackedMaterial]) -> None:
    """Replace the material table.

    Raises:
        RuntimeError: If there are more than MAX_MATERIALS materials.
    """
    count = len(materials)
    if count > MAX_MATERIALS:
        raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded: {count}")

    kinds = np.zeros(MAX_MATERIALS, dtype=np.int32)
    colors = np.zeros((MAX_MATERIALS, 3), dtype=np.float32)
    params = np.zeros((MAX_MATERIALS, 4), dtype=np.float32)
    for i, packed in enumerate(materials):
        kinds[i] = int(packed.kind)
        colors[i] = packed.color
        params[i] = packed.params

    material_kinds.from_numpy(kinds)
    material_colors.from_numpy(colors)
    material_params.from_numpy(params)
    num_materials[None] = count


def clear_materials() -> None:
    num_materials[None] = 0


def get_material_count() -> int:
    return num_materials[None]


@ti.func
def get_material_kind(material_id: ti.i32) -> ti.i32:
    return material_kinds[material_id]


@ti.func
def get_material_color(material_id: ti.i32) -> vec3:
    return material_colors[material_id]


@ti.func
def get_material_params(material_id: ti.i32) -> tm.vec4:
    return material_params[material_id]
