"""Camera image loading for KITTI-style image directories."""

from pathlib import Path
from typing import Union

import cv2
import numpy as np


IMAGE_PATTERNS = ("*.png", "*.jpg")


class CameraLoader:
    """Images of one camera, ordered by file name."""

    def __init__(self, image_dir: Union[str, Path]):
        """
        Args:
            image_dir: Directory of ``*.png`` images (``*.jpg`` if no PNGs).

        Raises:
            FileNotFoundError: If the directory doesn't exist.
        """
        self.image_path = Path(image_dir)
        if not self.image_path.exists():
            raise FileNotFoundError(f"Image directory not found: {self.image_path}")

        self.image_files = []
        for pattern in IMAGE_PATTERNS:
            self.image_files = sorted(self.image_path.glob(pattern))
            if self.image_files:
                break

    def __len__(self) -> int:
        return len(self.image_files)

    def __getitem__(self, index: int) -> np.ndarray:
        return self.load_image(index)

    def load_image(self, index: Union[int, str], grayscale: bool = False) -> np.ndarray:
        """
        Read one image.

        Args:
            index: Position in the sorted file list, or a file name.
            grayscale: Return a single-channel image.

        Returns:
            (H, W, 3) BGR image, or (H, W) if grayscale.
        """
        if isinstance(index, int):
            if index < 0 or index >= len(self.image_files):
                raise IndexError(f"Image index {index} out of range [0, {len(self) - 1}]")
            image_path = self.image_files[index]
        else:
            image_path = self.image_path / index
            if not image_path.exists():
                raise FileNotFoundError(f"Image not found: {image_path}")

        flag = cv2.IMREAD_GRAYSCALE if grayscale else cv2.IMREAD_COLOR
        image = cv2.imread(str(image_path), flag)
        if image is None:
            raise IOError(f"Failed to load image: {image_path}")

        return image

    def get_frame_id(self, index: int) -> str:
        """File stem of the image at ``index``, e.g. ``'000000'``."""
        return self.image_files[index].stem
