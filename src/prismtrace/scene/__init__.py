"""Scene module for scene assembly and ray-scene queries.

Components:
    intersection: Primitive and BVH storage, traversal, closest-hit and
        occlusion queries
    lights: Point and directional lights and their storage
    manager: SceneManager validating scene data and uploading it

Every module here allocates Taichi fields, so none is imported by this
package; import them explicitly after ti.init.
"""
