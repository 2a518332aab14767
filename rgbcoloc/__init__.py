"""
RGB Colocalizer: pixel colocalization of fluorescence channel stacks.

Main modules:
- core: Joint histogram, pixel classification, statistics and slice processing
- visualization: Quadrant and intensity-coded plots, TIFF export
- pairs: Channel pairs across stacks and the three-channel chain
- report: Result rows, report text, histogram matrix and metadata files
- config: Analysis settings
"""

__version__ = "0.1.0"

# Settings
from .config import (
    DEFAULT_THRESHOLD,
    MASK_THRESHOLD,
    RED_LABEL,
    GREEN_LABEL,
    BLUE_LABEL,
    MASK_LABEL,
    ColocConfig,
)

# Core functions
from .core import (
    DimensionMismatchError,
    ClassificationCounts,
    IntensitySums,
    SliceStatistics,
    SliceResult,
    pil_to_stack,
    as_stack,
    to_8bit_channel,
    split_channels,
    auto_threshold,
    joint_histogram,
    classify_pixels,
    intensity_sums,
    pearson,
    compute_statistics,
    process_slice,
)

# Visualization functions
from .visualization import (
    intensity_color,
    intensity_colors,
    mix_colors,
    quadrant_plot,
    intensity_plot,
    stack_to_gallery,
    save_mask_stack_tiff,
    save_rgb_stack_tiff,
)

# Channel pairs
from .pairs import (
    ChannelImage,
    PairResult,
    ColocAnalysis,
    build_channel,
    colocalize_pair,
    mask_channel,
    colocalize_three_channels,
    analyze_channels,
)

# Reports
from .report import (
    RESULTS_TITLE,
    ReportRow,
    merge_rows,
    report_header,
    lines_to_text,
    lines_to_dataframe,
    histogram_matrix_text,
    metadata_text,
    result_folder,
    save_result,
)

# UI function
from .ui import build_ui

__all__ = [
    # Settings
    "DEFAULT_THRESHOLD",
    "MASK_THRESHOLD",
    "RED_LABEL",
    "GREEN_LABEL",
    "BLUE_LABEL",
    "MASK_LABEL",
    "ColocConfig",
    # Core
    "DimensionMismatchError",
    "ClassificationCounts",
    "IntensitySums",
    "SliceStatistics",
    "SliceResult",
    "pil_to_stack",
    "as_stack",
    "to_8bit_channel",
    "split_channels",
    "auto_threshold",
    "joint_histogram",
    "classify_pixels",
    "intensity_sums",
    "pearson",
    "compute_statistics",
    "process_slice",
    # Visualization
    "intensity_color",
    "intensity_colors",
    "mix_colors",
    "quadrant_plot",
    "intensity_plot",
    "stack_to_gallery",
    "save_mask_stack_tiff",
    "save_rgb_stack_tiff",
    # Pairs
    "ChannelImage",
    "PairResult",
    "ColocAnalysis",
    "build_channel",
    "colocalize_pair",
    "mask_channel",
    "colocalize_three_channels",
    "analyze_channels",
    # Report
    "RESULTS_TITLE",
    "ReportRow",
    "merge_rows",
    "report_header",
    "lines_to_text",
    "lines_to_dataframe",
    "histogram_matrix_text",
    "metadata_text",
    "result_folder",
    "save_result",
    # UI
    "build_ui",
]
