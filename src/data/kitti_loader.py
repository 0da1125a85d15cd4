"""
KITTI Label Loading for 2D Regions.

Label Format (label_2/XXXXXX.txt):
==================================
Each line: type truncated occluded alpha left top right bottom h w l x y z ry [score]

Only the type, the 2D box (left, top, right, bottom in pixels) and the
optional score are used here. Each line becomes one BoundingBox whose id is
its line index within the file.
"""

from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from .structures import BoundingBox


KITTI_CLASSES: Dict[str, int] = {
    "Car": 0,
    "Van": 1,
    "Truck": 2,
    "Pedestrian": 3,
    "Person_sitting": 4,
    "Cyclist": 5,
    "Tram": 6,
    "Misc": 7,
}


def parse_label_line(
    line: str,
    box_id: int,
    class_map: Optional[Dict[str, int]] = None,
) -> BoundingBox:
    """
    Parse one KITTI label line into a BoundingBox.

    Args:
        line: Single line from a label file.
        box_id: Identifier to assign.
        class_map: Class name to id mapping (unknown classes map to -1).

    Returns:
        BoundingBox with roi (x, y, width, height).
    """
    parts = line.strip().split()
    if len(parts) < 8:
        raise ValueError(f"Malformed label line: '{line.strip()}'")

    class_map = class_map or KITTI_CLASSES
    left, top, right, bottom = (float(v) for v in parts[4:8])
    score = float(parts[15]) if len(parts) > 15 else 1.0

    return BoundingBox.from_xyxy(
        box_id,
        (left, top, right, bottom),
        class_id=class_map.get(parts[0], -1),
        confidence=score,
    )


def load_kitti_boxes(
    label_file: Union[str, Path],
    classes: Optional[Sequence[str]] = None,
    min_confidence: float = 0.0,
) -> List[BoundingBox]:
    """
    Load 2D regions from a KITTI label file.

    Args:
        label_file: Path to label file.
        classes: Keep only these class names (all if None). ``DontCare`` is
            always skipped.
        min_confidence: Minimum score to keep a region.

    Returns:
        List of BoundingBox, ids in line order.

    Raises:
        FileNotFoundError: If the label file doesn't exist.
    """
    label_file = Path(label_file)
    if not label_file.exists():
        raise FileNotFoundError(f"Label file not found: {label_file}")

    boxes = []
    with open(label_file, "r") as f:
        for line in f:
            if not line.strip():
                continue
            cls_name = line.split()[0]
            if cls_name == "DontCare":
                continue
            if classes is not None and cls_name not in classes:
                continue

            box = parse_label_line(line, box_id=len(boxes))
            if box.confidence >= min_confidence:
                boxes.append(box)

    return boxes
