"""Emissive material: a surface that shows its own color and spawns no rays."""

from dataclasses import dataclass

from prismtrace.materials.base import MaterialKind, PackedMaterial, check_color


@dataclass(frozen=True)
class EmissiveMaterial:
    """Self-lit surface.

    Emissive surfaces are visible to camera and specular rays only. They do
    not illuminate other surfaces; use a light for that.

    Attributes:
        color: Emitted radiance per channel (may exceed 1).
    """

    color: tuple[float, float, float] = (1.0, 1.0, 1.0)

    kind = MaterialKind.EMISSIVE

    def __post_init__(self) -> None:
        object.__setattr__(self, "color", check_color("Emissive color", self.color, upper=None))

    def pack(self) -> PackedMaterial:
        return PackedMaterial(self.kind, self.color, (0.0, 0.0, 0.0, 0.0))
