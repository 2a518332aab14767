"""
Core functionality for RGB Colocalizer.

Includes:
- Stack loading and 8-bit channel extraction
- Joint intensity histogram
- Pixel classification against two noise thresholds
- Colocalization statistics (percentages, overlap coefficients, Pearson)
- Per-slice processing
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
from PIL import Image, ImageSequence
from skimage import exposure, filters

from . import visualization as viz
from .config import HIST_SIZE

logger = logging.getLogger(__name__)

# Pixel categories
BELOW_BOTH = 0
CH1_ONLY = 1
CH2_ONLY = 2
COLOCALIZED = 3


class DimensionMismatchError(ValueError):
    """Two channels compared against each other differ in width or height."""


# -----------------------
# Stack helpers
# -----------------------

def pil_to_stack(img: Image.Image) -> np.ndarray:
    """Read every frame of a (multi-page) image into a (slices, H, W[, C]) array."""
    frames = []
    for frame in ImageSequence.Iterator(img):
        if frame.mode in ("P", "1", "LA", "PA"):
            frame = frame.convert("RGB" if frame.mode in ("P", "PA") else "L")
        arr = np.array(frame)
        if arr.ndim == 3 and arr.shape[2] == 4:
            arr = arr[:, :, :3]
        frames.append(arr)
    if not frames:
        raise ValueError("Image contains no frames")
    if len({f.shape for f in frames}) > 1:
        raise ValueError("Frames of the image differ in size")
    return np.stack(frames, axis=0)


def as_stack(planes) -> np.ndarray:
    """Normalize a single plane, a list of planes or a 3D array to (slices, H, W)."""
    if isinstance(planes, (list, tuple)):
        if len(planes) == 0:
            raise ValueError("Empty stack")
        arr = np.stack([np.asarray(p) for p in planes], axis=0)
    else:
        arr = np.asarray(planes)
    if arr.ndim == 2:
        arr = arr[None]
    if arr.ndim != 3:
        raise ValueError(f"Expected a stack of 2D planes; got shape {arr.shape}")
    return arr


_CHANNEL_KEYS = {
    "r": 0, "red": 0,
    "g": 1, "green": 1,
    "b": 2, "blue": 2,
}


def _channel_index(channel) -> Optional[int]:
    if channel is None:
        return None
    if isinstance(channel, str):
        key = channel.strip().lower()
        if key in ("gray", "grey"):
            return None
        if key not in _CHANNEL_KEYS:
            raise ValueError("Invalid channel selection")
        return _CHANNEL_KEYS[key]
    if isinstance(channel, (int, np.integer)) and 0 <= int(channel) <= 2:
        return int(channel)
    raise ValueError("Invalid channel selection")


def to_8bit_channel(stack: np.ndarray, channel=None) -> np.ndarray:
    """Return an 8-bit (slices, H, W) stack for one channel.

    RGB stacks are split and `channel` ("r"/"g"/"b" or 0/1/2) selects the
    plane; "gray" or None averages with luminance weights. Grayscale stacks
    ignore `channel`. Non-8-bit data is rescaled from its min/max to 0-255.
    """
    arr = np.asarray(stack)
    if arr.ndim == 2:
        arr = arr[None]
    if arr.ndim == 4:
        if arr.shape[3] < 3:
            raise ValueError(f"Expected RGB frames; got {arr.shape[3]} channel(s)")
        idx = _channel_index(channel)
        if idx is None:
            r, g, b = arr[..., 0], arr[..., 1], arr[..., 2]
            arr = 0.2989 * r + 0.5870 * g + 0.1140 * b
            if np.asarray(stack).dtype == np.uint8:
                return np.clip(np.round(arr), 0, 255).astype(np.uint8)
        else:
            arr = arr[..., idx]
    elif arr.ndim != 3:
        raise ValueError(f"Unsupported image shape {arr.shape}")
    if arr.dtype == np.uint8:
        return arr
    if arr.dtype == bool:
        return arr.astype(np.uint8) * 255
    out = exposure.rescale_intensity(arr.astype(np.float64), in_range="image", out_range=(0, 255))
    return np.round(out).astype(np.uint8)


def split_channels(stack: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Split an RGB stack into red, green and blue 8-bit stacks."""
    arr = np.asarray(stack)
    if arr.ndim == 3 and arr.shape[2] in (3, 4):
        arr = arr[None]
    if arr.ndim != 4 or arr.shape[3] < 3:
        raise ValueError(f"Expected a 3-channel image; got shape {arr.shape}")
    return tuple(to_8bit_channel(arr, i) for i in range(3))


def auto_threshold(stack: np.ndarray) -> int:
    """IsoData noise threshold of the middle slice.

    Returns the lowest intensity counted as signal, so that pixels with
    value >= threshold are above it.
    """
    plane = as_stack(stack)
    plane = plane[plane.shape[0] // 2]
    lo, hi = int(plane.min()), int(plane.max())
    if lo == hi:
        return lo
    th = float(filters.threshold_isodata(plane, nbins=HIST_SIZE))
    return int(np.clip(math.floor(th) + 1, 0, HIST_SIZE - 1))


def check_same_size(shape1: Sequence[int], shape2: Sequence[int], title1: str = "Channel 1", title2: str = "Channel 2") -> None:
    if tuple(shape1[-2:]) != tuple(shape2[-2:]):
        raise DimensionMismatchError(
            f"{title1} and {title2} are not of the same pixel size: "
            f"{tuple(shape1[-2:])} vs {tuple(shape2[-2:])}"
        )


def _flat_pair(plane1: np.ndarray, plane2: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    a = np.asarray(plane1)
    b = np.asarray(plane2)
    check_same_size(a.shape, b.shape)
    if a.ndim != 2 or b.ndim != 2:
        raise ValueError(f"Expected 2D planes; got shapes {a.shape} and {b.shape}")
    for arr in (a, b):
        if arr.dtype != np.uint8 and arr.size > 0 and (arr.min() < 0 or arr.max() >= HIST_SIZE):
            raise ValueError("Intensities must lie in 0-255; convert with to_8bit_channel first")
    return a.astype(np.intp).ravel(), b.astype(np.intp).ravel()


# -----------------------
# Joint histogram
# -----------------------

def _histogram(z1: np.ndarray, z2: np.ndarray) -> np.ndarray:
    key = z1 * HIST_SIZE + z2
    counts = np.bincount(key, minlength=HIST_SIZE * HIST_SIZE)
    return counts.reshape(HIST_SIZE, HIST_SIZE)


def joint_histogram(plane1: np.ndarray, plane2: np.ndarray) -> Tuple[np.ndarray, int]:
    """256x256 co-occurrence counts indexed [z1, z2] and the largest count."""
    z1, z2 = _flat_pair(plane1, plane2)
    hist = _histogram(z1, z2)
    return hist, int(hist.max())


# -----------------------
# Classification
# -----------------------

@dataclass(frozen=True)
class ClassificationCounts:
    below_both: int = 0
    ch1_only: int = 0
    ch2_only: int = 0
    colocalized: int = 0

    @classmethod
    def from_categories(cls, categories: np.ndarray) -> "ClassificationCounts":
        c = np.bincount(np.asarray(categories, dtype=np.intp).ravel(), minlength=4)
        return cls(int(c[BELOW_BOTH]), int(c[CH1_ONLY]), int(c[CH2_ONLY]), int(c[COLOCALIZED]))

    @property
    def above_threshold(self) -> int:
        return self.ch1_only + self.ch2_only + self.colocalized

    @property
    def total(self) -> int:
        return self.below_both + self.above_threshold


def _categorize(z1: np.ndarray, z2: np.ndarray, threshold1: int, threshold2: int) -> np.ndarray:
    above1 = (z1 >= threshold1).astype(np.uint8)
    above2 = (z2 >= threshold2).astype(np.uint8)
    return above1 + 2 * above2


def classify_pixels(plane1: np.ndarray, plane2: np.ndarray, threshold1: int, threshold2: int) -> Tuple[ClassificationCounts, np.ndarray]:
    """Classify each pixel pair as below both, channel 1 only, channel 2 only or colocalized.

    Returns the counts and a plane of category codes (BELOW_BOTH..COLOCALIZED).
    """
    z1, z2 = _flat_pair(plane1, plane2)
    categories = _categorize(z1, z2, int(threshold1), int(threshold2))
    counts = ClassificationCounts.from_categories(categories)
    return counts, categories.reshape(np.shape(plane1))


# -----------------------
# Statistics
# -----------------------

@dataclass(frozen=True)
class IntensitySums:
    """Running sums for the Pearson coefficient, held as exact integers."""
    n: int = 0
    sum1: int = 0
    sum2: int = 0
    sum1_sq: int = 0
    sum2_sq: int = 0
    sum12: int = 0

    @classmethod
    def from_pixels(cls, z1: np.ndarray, z2: np.ndarray) -> "IntensitySums":
        a = np.asarray(z1, dtype=np.int64).ravel()
        b = np.asarray(z2, dtype=np.int64).ravel()
        return cls(
            n=int(a.size),
            sum1=int(a.sum()),
            sum2=int(b.sum()),
            sum1_sq=int(np.dot(a, a)),
            sum2_sq=int(np.dot(b, b)),
            sum12=int(np.dot(a, b)),
        )


def intensity_sums(
    plane1: np.ndarray,
    plane2: np.ndarray,
    categories: Optional[np.ndarray] = None,
    *,
    skip_below_threshold: bool = False,
) -> IntensitySums:
    z1, z2 = _flat_pair(plane1, plane2)
    if skip_below_threshold:
        if categories is None:
            raise ValueError("Pixel categories are required to skip pixels below thresholds")
        keep = np.asarray(categories).ravel() != BELOW_BOTH
        return IntensitySums.from_pixels(z1[keep], z2[keep])
    return IntensitySums.from_pixels(z1, z2)


def pearson(sums: IntensitySums) -> float:
    """Sample Pearson coefficient; NaN when either channel has zero variance."""
    n = sums.n
    numerator = n * sums.sum12 - sums.sum1 * sums.sum2
    denominator = (n * sums.sum1_sq - sums.sum1 ** 2) * (n * sums.sum2_sq - sums.sum2 ** 2)
    if denominator <= 0:
        return float("nan")
    return numerator / math.sqrt(denominator)


def _ratio(numerator: int, denominator: int, scale: float = 1.0) -> float:
    if denominator == 0:
        return float("nan")
    return numerator / denominator * scale


@dataclass(frozen=True)
class SliceStatistics:
    counts: ClassificationCounts
    percent_ch1_only: float
    percent_ch2_only: float
    percent_colocalized: float
    # Manders-style M1 / M2
    ch1_overlap_ch2: float
    ch2_overlap_ch1: float
    pearson: float
    max_count: int = 0


def compute_statistics(counts: ClassificationCounts, sums: IntensitySums, max_count: int = 0) -> SliceStatistics:
    above = counts.above_threshold
    return SliceStatistics(
        counts=counts,
        percent_ch1_only=_ratio(counts.ch1_only, above, 100.0),
        percent_ch2_only=_ratio(counts.ch2_only, above, 100.0),
        percent_colocalized=_ratio(counts.colocalized, above, 100.0),
        ch1_overlap_ch2=_ratio(counts.colocalized, counts.ch1_only + counts.colocalized),
        ch2_overlap_ch1=_ratio(counts.colocalized, counts.ch2_only + counts.colocalized),
        pearson=pearson(sums),
        max_count=int(max_count),
    )


# -----------------------
# Slice processing
# -----------------------

@dataclass(eq=False)
class SliceResult:
    statistics: SliceStatistics
    histogram: np.ndarray
    coloc_mask: np.ndarray
    color_plot: Optional[np.ndarray] = None
    intensity_plot: Optional[np.ndarray] = None


def process_slice(
    plane1: np.ndarray,
    plane2: np.ndarray,
    threshold1: int,
    threshold2: int,
    *,
    color1: Sequence[int] = viz.RED,
    color2: Sequence[int] = viz.GREEN,
    skip_below_threshold: bool = False,
    color_plot: bool = True,
    intensity_plot: bool = True,
) -> SliceResult:
    """Colocalize one slice of two channels.

    Both planes are read once; the histogram, the categories, the
    colocalization mask and the Pearson sums all derive from the same
    flattened intensities. The two plots are built from the finished
    histogram afterwards.
    """
    shape = np.shape(plane1)
    t1, t2 = int(threshold1), int(threshold2)
    z1, z2 = _flat_pair(plane1, plane2)

    histogram = _histogram(z1, z2)
    max_count = int(histogram.max())
    categories = _categorize(z1, z2, t1, t2)
    counts = ClassificationCounts.from_categories(categories)
    coloc_mask = np.where(categories == COLOCALIZED, 255, 0).astype(np.uint8).reshape(shape)
    if skip_below_threshold:
        keep = categories != BELOW_BOTH
        sums = IntensitySums.from_pixels(z1[keep], z2[keep])
    else:
        sums = IntensitySums.from_pixels(z1, z2)

    statistics = compute_statistics(counts, sums, max_count)
    return SliceResult(
        statistics=statistics,
        histogram=histogram,
        coloc_mask=coloc_mask,
        color_plot=viz.quadrant_plot(histogram, t1, t2, color1, color2) if color_plot else None,
        intensity_plot=viz.intensity_plot(histogram, max_count, t1, t2) if intensity_plot else None,
    )
