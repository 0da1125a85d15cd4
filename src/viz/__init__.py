"""Visualization utilities for camera/LiDAR fusion results."""

from .bev_viz import (
    TopViewConfig,
    TopViewRenderer,
    object_color,
    show_3d_objects,
)

__all__ = [
    "TopViewConfig",
    "TopViewRenderer",
    "object_color",
    "show_3d_objects",
]
