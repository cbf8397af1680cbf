"""Exception types raised while building scenes."""


class SceneValidationError(ValueError):
    """Raised when scene data is malformed.

    Covers degenerate geometry (zero-radius spheres, zero-area triangles,
    zero-length plane normals), non-finite coordinates, out-of-range material
    parameters and references to materials that do not exist. Validation
    happens when the scene is assembled so the traversal kernels never need
    to check their inputs.
    """
