"""
Channel-pair colocalization across stacks.

APIs:
- colocalize_pair(channel1, channel2, config) -> PairResult
- colocalize_three_channels(channel3, rg_result, config) -> PairResult
- analyze_channels(red, green, blue, config) -> ColocAnalysis

Notes:
- Stacks of different length are compared over the shorter one.
- Slices share no state; with config.max_workers > 1 they run on a thread
  pool and are reassembled in slice order.
- The three-channel chain compares the blue channel with the binary
  colocalization mask of red vs green.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import (
    BLUE_LABEL,
    GREEN_LABEL,
    MASK_LABEL,
    MASK_THRESHOLD,
    MASK_TITLE,
    RED_LABEL,
    ColocConfig,
)
from .core import DimensionMismatchError, SliceResult, SliceStatistics, as_stack, check_same_size, process_slice
from .report import (
    RESULTS_TITLE,
    Line,
    ReportRow,
    lines_to_dataframe,
    lines_to_text,
    merge_rows,
    report_header,
)
from .visualization import BLUE, GREEN, ORANGE, RED

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class ChannelImage:
    """One 8-bit channel stack with its threshold and plot color."""
    title: str
    label: str
    stack: np.ndarray
    threshold: int
    color: Tuple[int, int, int]
    path: Optional[str] = None

    def __post_init__(self):
        self.stack = as_stack(self.stack)
        self.threshold = int(self.threshold)

    @property
    def n_slices(self) -> int:
        return int(self.stack.shape[0])


def build_channel(stack, label: str, config: ColocConfig, *, title: Optional[str] = None, path: Optional[str] = None) -> ChannelImage:
    """ChannelImage for the Red/Green/Blue channel with the threshold from `config`."""
    settings = {
        RED_LABEL: (config.red_threshold, RED),
        GREEN_LABEL: (config.green_threshold, GREEN),
        BLUE_LABEL: (config.blue_threshold, BLUE),
    }
    if label not in settings:
        raise ValueError(f"Unknown channel label: {label}")
    threshold, color = settings[label]
    return ChannelImage(title=title or label, label=label, stack=stack, threshold=threshold, color=color, path=path)


@dataclass(eq=False)
class PairResult:
    title1: str
    title2: str
    label1: str
    label2: str
    threshold1: int
    threshold2: int
    slices: List[SliceResult] = field(default_factory=list)
    path1: Optional[str] = None
    path2: Optional[str] = None

    @property
    def n_slices(self) -> int:
        return len(self.slices)

    @property
    def pair_title(self) -> str:
        return f"{self.title1} vs {self.title2}"

    @property
    def channels_title(self) -> str:
        return f"{self.label1} vs {self.label2}"

    @property
    def statistics(self) -> List[SliceStatistics]:
        return [s.statistics for s in self.slices]

    def _stack(self, name: str) -> Optional[np.ndarray]:
        planes = [getattr(s, name) for s in self.slices]
        if not planes or any(p is None for p in planes):
            return None
        return np.stack(planes, axis=0)

    @property
    def histogram_stack(self) -> Optional[np.ndarray]:
        return self._stack("histogram")

    @property
    def color_stack(self) -> Optional[np.ndarray]:
        return self._stack("color_plot")

    @property
    def intensity_stack(self) -> Optional[np.ndarray]:
        return self._stack("intensity_plot")

    @property
    def mask_stack(self) -> Optional[np.ndarray]:
        return self._stack("coloc_mask")

    def to_report_rows(self) -> List[ReportRow]:
        return [
            ReportRow.from_statistics(s, pair_title=self.pair_title, slice_index=i, channels=self.channels_title)
            for i, s in enumerate(self.statistics, start=1)
        ]


def colocalize_pair(
    channel1: ChannelImage,
    channel2: ChannelImage,
    config: ColocConfig,
    *,
    color_plot: Optional[bool] = None,
    intensity_plot: Optional[bool] = None,
) -> PairResult:
    """Colocalize two channel stacks slice by slice.

    Raises DimensionMismatchError before any pixel is read when the planes
    differ in size.
    """
    check_same_size(channel1.stack.shape, channel2.stack.shape, channel1.title, channel2.title)
    n_slices = min(channel1.n_slices, channel2.n_slices)
    want_color = config.show_color_coloc if color_plot is None else bool(color_plot)
    want_intensity = config.show_intensity_coloc if intensity_plot is None else bool(intensity_plot)

    def _run(i: int) -> SliceResult:
        logger.debug("%s vs %s: slice %d/%d", channel1.label, channel2.label, i + 1, n_slices)
        return process_slice(
            channel1.stack[i], channel2.stack[i],
            channel1.threshold, channel2.threshold,
            color1=channel1.color, color2=channel2.color,
            skip_below_threshold=config.skip_pearson_below_threshold,
            color_plot=want_color,
            intensity_plot=want_intensity,
        )

    if config.max_workers > 1 and n_slices > 1:
        with ThreadPoolExecutor(max_workers=int(config.max_workers)) as pool:
            slices = list(pool.map(_run, range(n_slices)))
    else:
        slices = [_run(i) for i in range(n_slices)]

    logger.info(
        "Colocalized %s vs %s (%s vs %s): %d slice(s)",
        channel1.title, channel2.title, channel1.label, channel2.label, n_slices,
    )
    return PairResult(
        title1=channel1.title,
        title2=channel2.title,
        label1=channel1.label,
        label2=channel2.label,
        threshold1=channel1.threshold,
        threshold2=channel2.threshold,
        slices=slices,
        path1=channel1.path,
        path2=channel2.path,
    )


def mask_channel(
    result: PairResult,
    *,
    title: str = MASK_TITLE,
    label: str = MASK_LABEL,
    threshold: int = MASK_THRESHOLD,
    color: Tuple[int, int, int] = ORANGE,
) -> ChannelImage:
    """Pseudo-channel made of a pair's colocalization masks (255 = colocalized)."""
    stack = result.mask_stack
    if stack is None:
        raise ValueError(f"{result.pair_title} has no slices to build a mask channel from")
    return ChannelImage(title=title, label=label, stack=stack, threshold=threshold, color=color)


def colocalize_three_channels(channel3: ChannelImage, rg_result: PairResult, config: ColocConfig) -> PairResult:
    """Colocalize a third channel with the colocalized pixels of a pair."""
    pseudo = mask_channel(rg_result, threshold=config.mask_threshold)
    # plots of a binary channel carry no intensity information
    return colocalize_pair(channel3, pseudo, config, color_plot=False, intensity_plot=False)


@dataclass(eq=False)
class ColocAnalysis:
    pair_results: List[PairResult]
    three_channel_result: Optional[PairResult]
    pair_lines: List[Line]
    three_channel_lines: List[Line]
    pair_header: str

    def pair_report_text(self) -> str:
        return self.pair_header + "\n" + lines_to_text(self.pair_lines)

    def three_channel_report_text(self) -> str:
        return RESULTS_TITLE + "\n" + lines_to_text(self.three_channel_lines)

    def pair_dataframe(self) -> pd.DataFrame:
        return lines_to_dataframe(self.pair_lines)

    def three_channel_dataframe(self) -> pd.DataFrame:
        return lines_to_dataframe(self.three_channel_lines)


def analyze_channels(
    red: Optional[ChannelImage] = None,
    green: Optional[ChannelImage] = None,
    blue: Optional[ChannelImage] = None,
    config: Optional[ColocConfig] = None,
) -> ColocAnalysis:
    """Red vs Blue, Green vs Blue, Red vs Green, then Blue vs the Red/Green mask.

    Missing channels skip the pairs that need them. A pair whose images
    differ in size is logged and skipped; the others still run.
    """
    config = config or ColocConfig()
    pair_results: List[PairResult] = []
    lines: List[Line] = []
    rg_result: Optional[PairResult] = None

    pairs: Sequence[Tuple[str, Optional[ChannelImage], Optional[ChannelImage]]] = (
        ("rb", red, blue),
        ("gb", green, blue),
        ("rg", red, green),
    )
    for key, first, second in pairs:
        if first is None or second is None:
            continue
        try:
            result = colocalize_pair(first, second, config)
        except DimensionMismatchError as e:
            logger.error("Skipping %s vs %s: %s", first.label, second.label, e)
            continue
        pair_results.append(result)
        lines = merge_rows(lines, result.to_report_rows(), config.channels_in_one_row)
        if key == "rg":
            rg_result = result

    three_result: Optional[PairResult] = None
    three_lines: List[Line] = []
    if blue is not None and rg_result is not None and rg_result.n_slices > 0:
        try:
            three_result = colocalize_three_channels(blue, rg_result, config)
            three_lines = merge_rows([], three_result.to_report_rows(), False)
        except DimensionMismatchError as e:
            logger.error("Skipping three-channel colocalization: %s", e)

    return ColocAnalysis(
        pair_results=pair_results,
        three_channel_result=three_result,
        pair_lines=lines,
        three_channel_lines=three_lines,
        pair_header=report_header(len(pair_results), config.channels_in_one_row),
    )
