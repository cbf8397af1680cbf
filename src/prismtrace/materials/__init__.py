"""Materials module for surface shading models.

Components:
    base: MaterialKind enumeration and the packed material layout
    diffuse: Lambertian surface with an optional Blinn-Phong highlight
    mirror: Perfect specular reflector
    dielectric: Glass-like material with Fresnel-weighted reflection and refraction
    emissive: Self-lit surface
    storage: Taichi fields holding the material table (import after ti.init)
"""

from .base import MaterialKind, PackedMaterial
from .dielectric import DielectricMaterial, split_dielectric
from .diffuse import DiffuseMaterial, eval_diffuse
from .emissive import EmissiveMaterial
from .mirror import MirrorMaterial, scatter_mirror

Material = DiffuseMaterial | MirrorMaterial | DielectricMaterial | EmissiveMaterial

__all__ = [
    "DielectricMaterial",
    "DiffuseMaterial",
    "EmissiveMaterial",
    "Material",
    "MaterialKind",
    "MirrorMaterial",
    "PackedMaterial",
    "eval_diffuse",
    "scatter_mirror",
    "split_dielectric",
]
