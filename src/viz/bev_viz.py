"""
Top-View Visualization of LiDAR Points per Detected Object.

Renders each region's associated LiDAR points in a bird's-eye view:
- Points of each object in a color derived from its region id
- Rectangle enclosing the object's points
- Label with id, point count, class, closest distance and lateral width
- Horizontal distance markers every ``marker_spacing`` meters

Coordinate mapping (LiDAR frame, x forward, y left):
    v = height - x * height / world_height     (forward is up)
    u = width / 2 - y * width / world_width    (left is left)
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np

from ..data.structures import BoundingBox


WINDOW_NAME = "3D Objects"


@dataclass
class TopViewConfig:
    """
    Configuration for the top-view renderer.

    Attributes:
        world_size: (width, height) of the displayed area in meters;
            width is lateral (y), height is forward (x).
        image_size: (width, height) of the output image in pixels.
        marker_spacing: Distance between horizontal markers in meters.
        point_radius: Radius of drawn points in pixels.
        background_color: Background color (BGR).
        marker_color: Distance marker color (BGR).
        font_scale: Scale of label text.
    """
    world_size: Tuple[float, float] = (4.0, 20.0)
    image_size: Tuple[int, int] = (1000, 2000)
    marker_spacing: float = 2.0
    point_radius: int = 4
    background_color: Tuple[int, int, int] = (255, 255, 255)
    marker_color: Tuple[int, int, int] = (255, 0, 0)
    font_scale: float = 2.0


def object_color(box_id: int) -> Tuple[int, int, int]:
    """Deterministic dark color for a region id (BGR)."""
    rng = np.random.default_rng(abs(int(box_id)))
    b, g, r = rng.integers(0, 150, size=3)
    return (int(b), int(g), int(r))


class TopViewRenderer:
    """
    Bird's-eye renderer for per-object LiDAR points.

    Example:
        >>> renderer = TopViewRenderer(TopViewConfig(world_size=(4, 20)))
        >>> image = renderer.render(frame.bounding_boxes)
    """

    def __init__(self, config: Optional[TopViewConfig] = None):
        """
        Initialize renderer.

        Args:
            config: Renderer configuration. Uses defaults if None.
        """
        self.config = config or TopViewConfig()

    def world_to_pixel(self, x: float, y: float) -> Tuple[int, int]:
        """
        Convert LiDAR coordinates (meters) to pixel coordinates.

        Args:
            x: Forward distance in meters.
            y: Lateral offset in meters (positive = left).

        Returns:
            Pixel coordinates (u, v).
        """
        world_w, world_h = self.config.world_size
        img_w, img_h = self.config.image_size
        v = int(-x * img_h / world_h + img_h)
        u = int(-y * img_w / world_w + img_w / 2)
        return (u, v)

    def create_canvas(self) -> np.ndarray:
        """Create empty canvas with background color."""
        img_w, img_h = self.config.image_size
        canvas = np.zeros((img_h, img_w, 3), dtype=np.uint8)
        canvas[:] = self.config.background_color
        return canvas

    def draw_object(self, canvas: np.ndarray, box: BoundingBox) -> np.ndarray:
        """
        Draw one object's LiDAR points, enclosing rectangle and label.

        Regions without LiDAR points are skipped.
        """
        if not box.lidar_points:
            return canvas

        color = object_color(box.box_id)
        xs = np.array([p.x for p in box.lidar_points])
        ys = np.array([p.y for p in box.lidar_points])

        pixels = [self.world_to_pixel(x, y) for x, y in zip(xs, ys)]
        for u, v in pixels:
            cv2.circle(canvas, (u, v), self.config.point_radius, color, -1)

        us = [u for u, _ in pixels]
        vs = [v for _, v in pixels]
        left, right, top, bottom = min(us), max(us), min(vs), max(vs)
        cv2.rectangle(canvas, (left, top), (right, bottom), (0, 0, 0), 2)

        line_height = int(35 * self.config.font_scale)
        label_1 = f"id={box.box_id}, #pts={len(box.lidar_points)}, #cls={box.class_id}"
        label_2 = f"xmin={xs.min():.2f} m, yw={ys.max() - ys.min():.2f} m"
        cv2.putText(canvas, label_1, (left - 250, bottom + line_height),
                    cv2.FONT_ITALIC, self.config.font_scale, color)
        cv2.putText(canvas, label_2, (left - 250, bottom + 2 * line_height + 10),
                    cv2.FONT_ITALIC, self.config.font_scale, color)

        return canvas

    def draw_distance_markers(self, canvas: np.ndarray) -> np.ndarray:
        """Draw horizontal lines every ``marker_spacing`` meters."""
        world_h = self.config.world_size[1]
        img_w = self.config.image_size[0]
        n_markers = int(np.floor(world_h / self.config.marker_spacing))

        for i in range(n_markers):
            _, v = self.world_to_pixel(i * self.config.marker_spacing, 0.0)
            cv2.line(canvas, (0, v), (img_w, v), self.config.marker_color)

        return canvas

    def render(self, boxes: Sequence[BoundingBox]) -> np.ndarray:
        """
        Render all objects of a frame.

        Args:
            boxes: Regions with associated LiDAR points.

        Returns:
            Top-view image (H, W, 3) uint8.
        """
        canvas = self.create_canvas()
        for box in boxes:
            self.draw_object(canvas, box)
        return self.draw_distance_markers(canvas)


def show_3d_objects(
    boxes: List[BoundingBox],
    world_size: Tuple[float, float],
    image_size: Tuple[int, int],
    wait: bool = True,
    display: bool = True,
) -> np.ndarray:
    """
    Render the objects of a frame in top view and optionally display them.

    Args:
        boxes: Regions with associated LiDAR points.
        world_size: (width, height) of the displayed area in meters.
        image_size: (width, height) of the output image in pixels.
        wait: Block until a key is pressed (only when displaying).
        display: Open an OpenCV window with the result.

    Returns:
        Rendered top-view image.
    """
    renderer = TopViewRenderer(TopViewConfig(
        world_size=tuple(world_size),
        image_size=tuple(int(v) for v in image_size),
    ))
    image = renderer.render(boxes)

    if display:
        cv2.namedWindow(WINDOW_NAME, cv2.WINDOW_NORMAL)
        cv2.imshow(WINDOW_NAME, image)
        if wait:
            cv2.waitKey(0)

    return image
