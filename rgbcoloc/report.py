"""
Reporting for RGB Colocalizer.

Per-slice statistics become tab-delimited rows. Rows of several channel
pairs are either joined side by side per slice ("one row") or listed one
after another. Joint histograms are dumped as text matrices.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from .config import HIST_SIZE

if TYPE_CHECKING:
    from .core import SliceStatistics
    from .pairs import PairResult

RESULTS_TITLE = (
    "Image titles for colocalization\tSlice #\tCh1 vs Ch2\tCh1 pixels\tCh2 pixels\tColoc pixels\t"
    "Percent Ch1\tPercent Ch2\tPercent Coloc\tCh1 Overlap Ch2\tCh2 Overlap Ch1\tPearson\t"
)
COLUMNS = [c for c in RESULTS_TITLE.split("\t") if c]
RESULTS_SUBFOLDER = "colocalization_results"


def _fmt(value: float, digits: int) -> str:
    if value is None or math.isnan(value):
        return "NaN"
    return f"{value:.{digits}f}"


def _fmt_full(value: float) -> str:
    if value is None or math.isnan(value):
        return "NaN"
    return repr(float(value))


@dataclass(frozen=True)
class ReportRow:
    pair_title: str
    slice_index: int
    channels: str
    ch1_pixels: int
    ch2_pixels: int
    coloc_pixels: int
    percent_ch1: float
    percent_ch2: float
    percent_coloc: float
    ch1_overlap_ch2: float
    ch2_overlap_ch1: float
    pearson: float

    @classmethod
    def from_statistics(cls, stats: "SliceStatistics", *, pair_title: str, slice_index: int, channels: str) -> "ReportRow":
        return cls(
            pair_title=pair_title,
            slice_index=int(slice_index),
            channels=channels,
            ch1_pixels=stats.counts.ch1_only,
            ch2_pixels=stats.counts.ch2_only,
            coloc_pixels=stats.counts.colocalized,
            percent_ch1=stats.percent_ch1_only,
            percent_ch2=stats.percent_ch2_only,
            percent_coloc=stats.percent_colocalized,
            ch1_overlap_ch2=stats.ch1_overlap_ch2,
            ch2_overlap_ch1=stats.ch2_overlap_ch1,
            pearson=stats.pearson,
        )

    def fields(self) -> List[str]:
        return [
            self.pair_title,
            str(self.slice_index),
            self.channels,
            str(self.ch1_pixels),
            str(self.ch2_pixels),
            str(self.coloc_pixels),
            _fmt(self.percent_ch1, 3),
            _fmt(self.percent_ch2, 3),
            _fmt(self.percent_coloc, 3),
            _fmt(self.ch1_overlap_ch2, 5),
            _fmt(self.ch2_overlap_ch1, 5),
            _fmt(self.pearson, 3),
        ]

    def to_text(self) -> str:
        # every field is tab-terminated so rows can be concatenated
        return "".join(f + "\t" for f in self.fields())

    def as_dict(self) -> Dict[str, object]:
        values = [
            self.pair_title, self.slice_index, self.channels,
            self.ch1_pixels, self.ch2_pixels, self.coloc_pixels,
            self.percent_ch1, self.percent_ch2, self.percent_coloc,
            self.ch1_overlap_ch2, self.ch2_overlap_ch1, self.pearson,
        ]
        return dict(zip(COLUMNS, values))


Line = List[ReportRow]


def merge_rows(lines: Sequence[Line], rows: Sequence[ReportRow], in_one_row: bool) -> List[Line]:
    """Add one pair's rows to the report lines.

    In one-row mode the rows are joined to the right of the existing lines
    slice by slice; only as many lines as the shorter side survive.
    Otherwise each row becomes a new line.
    """
    if in_one_row and lines:
        return [list(line) + [row] for line, row in zip(lines, rows)]
    return [list(line) for line in lines] + [[row] for row in rows]


def report_header(n_pairs: int, in_one_row: bool) -> str:
    if in_one_row:
        return RESULTS_TITLE * max(1, int(n_pairs))
    return RESULTS_TITLE


def lines_to_text(lines: Sequence[Line]) -> str:
    return "\n".join("".join(row.to_text() for row in line) for line in lines)


def lines_to_dataframe(lines: Sequence[Line]) -> pd.DataFrame:
    width = max((len(line) for line in lines), default=1)
    if width == 1:
        columns = list(COLUMNS)
    else:
        columns = [f"{c} ({i})" for i in range(1, width + 1) for c in COLUMNS]
    records = []
    for line in lines:
        rec = {}
        for i, row in enumerate(line, start=1):
            for key, value in row.as_dict().items():
                rec[key if width == 1 else f"{key} ({i})"] = value
        records.append(rec)
    return pd.DataFrame(records, columns=columns)


# -----------------------
# Histogram matrix / metadata
# -----------------------

def histogram_matrix_text(result: "PairResult") -> str:
    """Joint histograms of all slices as tab-delimited matrices.

    Rows are channel-1 intensities, columns channel-2 intensities; each
    cell holds count + 1.
    """
    out = [f"Colocalization matrix for X:{result.title1} vs Y:{result.title2} and {result.label1} vs {result.label2}"]
    header = "\t".join([""] + [str(v) for v in range(HIST_SIZE)])
    for i, sl in enumerate(result.slices, start=1):
        out.append(f"Slice {i}")
        out.append(header)
        for z1, counts in enumerate(sl.histogram):
            out.append("\t".join([str(z1)] + [str(float(c + 1)) for c in counts.tolist()]))
        out.append("")
    return "\n".join(out) + "\n"


def metadata_text(result: "PairResult") -> str:
    out = []
    for n, (title, path, label, threshold) in enumerate(
        (
            (result.title1, result.path1, result.label1, result.threshold1),
            (result.title2, result.path2, result.label2, result.threshold2),
        ),
        start=1,
    ):
        if n > 1:
            out.append("")
        out.append(f"Image {n} information")
        out.append(f"Name:\t{title}")
        out.append(f"Path:\t{path or ''}")
        out.append(f"Channel:\t{label}")
        out.append(f"Threshold:\t{threshold}")
    out.append("Pearson correlation:\t" + "".join(_fmt_full(s.pearson) + "\t" for s in result.statistics))
    return "\n".join(out) + "\n"


def result_file_stem(result: "PairResult") -> str:
    return f"{result.title1}_vs_{result.title2}__{result.label1}_vs_{result.label2}"


def result_folder(image_path: str, when: Optional[datetime] = None) -> Path:
    """colocalization_results/<date>/<time> next to an analysed image."""
    when = when or datetime.now()
    return Path(image_path).parent / RESULTS_SUBFOLDER / when.strftime("%Y-%m-%d") / when.strftime("%H-%M-%S")


def save_result(result: "PairResult", folder) -> Tuple[str, str]:
    """Write Metadata_*.txt and Matrix_*.txt into `folder`; return both paths."""
    folder = Path(folder)
    folder.mkdir(parents=True, exist_ok=True)
    stem = result_file_stem(result).replace(os.sep, "_")
    meta_path = folder / f"Metadata_{stem}.txt"
    matrix_path = folder / f"Matrix_{stem}.txt"
    meta_path.write_text(metadata_text(result), encoding="utf-8")
    matrix_path.write_text(histogram_matrix_text(result), encoding="utf-8")
    return str(meta_path), str(matrix_path)
