"""Per-frame color grading.

The timeline only carries ColorGrade metadata; the render backend calls
grade_frame for every frame of a graded segment. Each parameter is in
[-1, 1] with 0 meaning "unchanged":

  - brightness, contrast, saturation: Pillow ImageEnhance factors of
    1 + value (so -1 is black / flat gray / grayscale, +1 doubles).
  - temperature: warm (+) pushes red up and blue down, cool (-) the
    reverse, by up to TEMPERATURE_SHIFT levels.
"""

import numpy as np
from PIL import Image, ImageEnhance

from .models import ColorGrade

TEMPERATURE_SHIFT = 40


def grade_frame(frame: np.ndarray, grade: ColorGrade | None) -> np.ndarray:
    """Apply grade to an RGB uint8 frame of shape (h, w, 3).

    Returns a new array with the same shape and dtype. An identity (or
    missing) grade returns the input unchanged.
    """
    if grade is None or grade.is_identity:
        return frame

    img = Image.fromarray(frame.astype(np.uint8))
    if grade.brightness:
        img = ImageEnhance.Brightness(img).enhance(1.0 + grade.brightness)
    if grade.contrast:
        img = ImageEnhance.Contrast(img).enhance(1.0 + grade.contrast)
    if grade.saturation:
        img = ImageEnhance.Color(img).enhance(1.0 + grade.saturation)

    result = np.asarray(img, dtype=np.int16).copy()
    if grade.temperature:
        shift = int(round(grade.temperature * TEMPERATURE_SHIFT))
        result[..., 0] += shift
        result[..., 2] -= shift
    return np.clip(result, 0, 255).astype(np.uint8)
