"""
Visualization helpers for RGB Colocalizer.

Includes:
- Log-intensity false-color ramp for the joint histogram
- Quadrant color-coded plot with threshold lines
- PIL conversion and TIFF export of planes and stacks

All plots are plain uint8 RGB buffers with intensity axes increasing to the
right (channel 1) and upward (channel 2): cell (z1, z2) is drawn at row
255 - z2, column z1.
"""

from __future__ import annotations

import math
import tempfile
from typing import List, Optional, Sequence, Tuple

import numpy as np
from PIL import Image

from .config import HIST_SIZE

RGB = Tuple[int, int, int]

# -----------------------
# Colors
# -----------------------
WHITE: RGB = (255, 255, 255)
RED: RGB = (255, 0, 0)
GREEN: RGB = (0, 255, 0)
BLUE: RGB = (0, 0, 255)
BLACK: RGB = (0, 0, 0)
GRAY: RGB = (128, 128, 128)
ORANGE: RGB = (255, 128, 0)

BELOW_THRESHOLD_COLOR: RGB = GRAY
MARK_COLOR: RGB = BLACK
BACKGROUND_COLOR: RGB = WHITE

# Ramp anchors
LOW_COLOR: RGB = (188, 110, 209)
MID_COLOR: RGB = (255, 174, 0)
HIGH_COLOR: RGB = (255, 252, 246)


def _clamp_ratio(ratio: float) -> float:
    if ratio is None or math.isnan(ratio):
        return 0.0
    return min(max(float(ratio), 0.0), 1.0)


def intensity_color(ratio: float) -> RGB:
    """Map a normalized log-count ratio in [0, 1] to an RGB color.

    Three linear segments: black to LOW_COLOR on [0, 0.1], LOW_COLOR to
    MID_COLOR on (0.1, 0.7], MID_COLOR to HIGH_COLOR on (0.7, 1].
    Components are truncated to integers.
    """
    r = _clamp_ratio(ratio)
    if r <= 0.1:
        t = r / 0.1
        return int(188 * t), int(110 * t), int(209 * t)
    if r <= 0.7:
        t = (r - 0.1) / 0.6
        return int(255 * t + 188 * (1 - t)), int(174 * t + 110 * (1 - t)), int(209 * (1 - t))
    t = (r - 0.7) / 0.3
    return 255, int(252 * t + 174 * (1 - t)), int(246 * t)


def intensity_colors(ratios: np.ndarray) -> np.ndarray:
    """Vectorized intensity_color; returns an (..., 3) uint8 array."""
    r = np.nan_to_num(np.asarray(ratios, dtype=np.float64), nan=0.0)
    r = np.clip(r, 0.0, 1.0)
    low = r <= 0.1
    mid = (r > 0.1) & (r <= 0.7)
    t_low = r / 0.1
    t_mid = (r - 0.1) / 0.6
    t_high = (r - 0.7) / 0.3
    red = np.where(low, 188 * t_low, np.where(mid, 255 * t_mid + 188 * (1 - t_mid), 255.0))
    green = np.where(low, 110 * t_low, np.where(mid, 174 * t_mid + 110 * (1 - t_mid), 252 * t_high + 174 * (1 - t_high)))
    blue = np.where(low, 209 * t_low, np.where(mid, 209 * (1 - t_mid), 246 * t_high))
    out = np.stack([red, green, blue], axis=-1)
    return np.trunc(out).astype(np.uint8)


def mix_colors(color1: Sequence[int], color2: Sequence[int]) -> RGB:
    """Color of the colocalized quadrant: 0.6 * (color1 + color2), clamped per component."""
    return tuple(min(255, int((int(a) + int(b)) * 0.6)) for a, b in zip(color1, color2))


def _plot_orientation(histogram: np.ndarray) -> np.ndarray:
    # histogram[z1, z2] -> plot[255 - z2, z1]
    return np.flipud(np.asarray(histogram).T)


def draw_threshold_lines(plot: np.ndarray, threshold1: int, threshold2: int, color: Sequence[int] = MARK_COLOR) -> np.ndarray:
    """Draw the channel-2 threshold as a row and the channel-1 threshold as a column, in place."""
    t1, t2 = int(threshold1), int(threshold2)
    if 0 <= t2 < HIST_SIZE:
        plot[HIST_SIZE - 1 - t2, :] = color
    if 0 <= t1 < HIST_SIZE:
        plot[:, t1] = color
    return plot


def quadrant_plot(
    histogram: np.ndarray,
    threshold1: int,
    threshold2: int,
    color1: Sequence[int] = RED,
    color2: Sequence[int] = GREEN,
) -> np.ndarray:
    """Color every occupied intensity pair by the category it falls into."""
    occupied = _plot_orientation(histogram) > 0
    z1_axis = np.arange(HIST_SIZE)[None, :]
    z2_axis = np.arange(HIST_SIZE)[::-1][:, None]
    above1 = z1_axis >= int(threshold1)
    above2 = z2_axis >= int(threshold2)
    plot = np.empty((HIST_SIZE, HIST_SIZE, 3), dtype=np.uint8)
    plot[:] = BACKGROUND_COLOR
    quadrants = [
        (~above1 & ~above2, BELOW_THRESHOLD_COLOR),
        (above1 & ~above2, tuple(color1)),
        (~above1 & above2, tuple(color2)),
        (above1 & above2, mix_colors(color1, color2)),
    ]
    for region, rgb in quadrants:
        plot[occupied & region] = rgb
    return draw_threshold_lines(plot, threshold1, threshold2)


def intensity_plot(histogram: np.ndarray, max_count: int, threshold1: int, threshold2: int) -> np.ndarray:
    """False-color plot of log(count + 1) / log(max_count) per intensity pair."""
    counts = _plot_orientation(histogram).astype(np.float64)
    if max_count > 1:
        ratios = np.log(counts + 1.0) / math.log(max_count)
    else:
        # log(1) == 0: every occupied cell is at the maximum
        ratios = (counts > 0).astype(np.float64)
    plot = intensity_colors(ratios)
    return draw_threshold_lines(plot, threshold1, threshold2)


# -----------------------
# PIL / file helpers
# -----------------------

def plane_to_pil(plane: np.ndarray) -> Image.Image:
    arr = np.asarray(plane)
    if arr.dtype != np.uint8:
        arr = np.clip(arr, 0, 255).astype(np.uint8)
    return Image.fromarray(arr)


def stack_to_gallery(stack: Optional[np.ndarray], caption: str) -> List[Tuple[Image.Image, str]]:
    if stack is None:
        return []
    return [(plane_to_pil(plane), f"{caption} (slice {i})") for i, plane in enumerate(stack, start=1)]


def _save_stack_tiff(frames: List[Image.Image], stem: str) -> str:
    tmp = tempfile.NamedTemporaryFile(delete=False, suffix=f"_{stem}.tif")
    tmp.close()
    frames[0].save(tmp.name, save_all=True, append_images=frames[1:])
    return tmp.name


def save_mask_stack_tiff(stack: np.ndarray, stem: str) -> str:
    """Write a (slices, H, W) mask stack as a multi-page 8-bit TIFF and return its path."""
    arr = np.asarray(stack)
    if arr.dtype == bool:
        arr = arr.astype(np.uint8) * 255
    if arr.ndim == 2:
        arr = arr[None]
    return _save_stack_tiff([plane_to_pil(p) for p in arr], stem)


def save_rgb_stack_tiff(stack: np.ndarray, stem: str) -> str:
    """Write a (slices, H, W, 3) plot stack as a multi-page RGB TIFF and return its path."""
    arr = np.asarray(stack)
    if arr.ndim == 3:
        arr = arr[None]
    return _save_stack_tiff([plane_to_pil(p) for p in arr], stem)
