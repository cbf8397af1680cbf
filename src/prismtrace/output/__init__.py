"""Image output: gamma encoding and PNG export."""

from prismtrace.output.export import apply_gamma, image_to_uint8, save_png

__all__ = ["apply_gamma", "image_to_uint8", "save_png"]
