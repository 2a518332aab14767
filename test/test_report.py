"""
Tests for rgbcoloc.report and rgbcoloc.config.
"""

from datetime import datetime
from pathlib import Path

import numpy as np
import pytest

from rgbcoloc.config import GREEN_LABEL, RED_LABEL, ColocConfig
from rgbcoloc.core import ClassificationCounts, IntensitySums, compute_statistics
from rgbcoloc.pairs import build_channel, colocalize_pair
from rgbcoloc.report import (
    COLUMNS,
    RESULTS_TITLE,
    ReportRow,
    histogram_matrix_text,
    lines_to_dataframe,
    lines_to_text,
    merge_rows,
    metadata_text,
    report_header,
    result_folder,
    save_result,
)

CHECKER = np.array(
    [
        [0, 0, 200, 200],
        [0, 0, 200, 200],
        [200, 200, 0, 0],
        [200, 200, 0, 0],
    ],
    dtype=np.uint8,
)


def checker_result(n_slices=1):
    config = ColocConfig(red_threshold=100, green_threshold=100)
    stack = np.stack([CHECKER] * n_slices)
    red = build_channel(stack, RED_LABEL, config, title="a", path="/data/a.tif")
    green = build_channel(stack.copy(), GREEN_LABEL, config, title="b", path="/data/b.tif")
    return colocalize_pair(red, green, config)


def row(slice_index, title="a vs b"):
    stats = compute_statistics(ClassificationCounts(colocalized=1), IntensitySums())
    return ReportRow.from_statistics(stats, pair_title=title, slice_index=slice_index, channels="Red vs Green")


def test_header_fields():
    assert RESULTS_TITLE.endswith("\t")
    assert len(COLUMNS) == 12
    assert COLUMNS[-1] == "Pearson"
    assert report_header(3, True) == RESULTS_TITLE * 3
    assert report_header(3, False) == RESULTS_TITLE


def test_row_text_format():
    rows = checker_result().to_report_rows()
    assert rows[0].to_text() == (
        "a vs b\t1\tRed vs Green\t0\t0\t8\t0.000\t0.000\t100.000\t1.00000\t1.00000\t1.000\t"
    )


def test_row_text_nan():
    text = row(1).to_text()
    assert text.endswith("\tNaN\t")
    assert row(1).as_dict()["Pearson"] != row(1).as_dict()["Pearson"]


def test_merge_one_row_truncates_to_shorter():
    lines = merge_rows([], [row(i) for i in range(1, 6)], True)
    lines = merge_rows(lines, [row(i, "c vs d") for i in range(1, 4)], True)
    assert len(lines) == 3
    assert [len(line) for line in lines] == [2, 2, 2]
    assert lines[2][1].pair_title == "c vs d"


def test_merge_stacked_appends():
    lines = merge_rows([], [row(i) for i in range(1, 6)], False)
    lines = merge_rows(lines, [row(i) for i in range(1, 4)], False)
    assert len(lines) == 8
    assert lines_to_text(lines).count("\n") == 7


def test_dataframe_columns():
    single = lines_to_dataframe(merge_rows([], [row(1), row(2)], False))
    assert list(single.columns) == COLUMNS
    wide = lines_to_dataframe(merge_rows(merge_rows([], [row(1)], True), [row(1)], True))
    assert len(wide.columns) == 2 * len(COLUMNS)
    assert "Pearson (2)" in wide.columns


def test_histogram_matrix_layout():
    text = histogram_matrix_text(checker_result(n_slices=2))
    lines = text.split("\n")
    assert lines[0] == "Colocalization matrix for X:a vs Y:b and Red vs Green"
    assert lines[1] == "Slice 1"
    header = lines[2].split("\t")
    assert header[0] == ""
    assert header[1:] == [str(v) for v in range(256)]
    row0 = lines[3].split("\t")
    assert row0[0] == "0"
    assert len(row0) == 257
    # count + 1
    assert row0[1] == "9.0"
    assert row0[2] == "1.0"
    assert lines[3 + 200].split("\t")[201] == "9.0"
    assert lines[3 + 256] == ""
    assert lines[3 + 257] == "Slice 2"


def test_metadata_text():
    text = metadata_text(checker_result(n_slices=2))
    assert "Image 1 information" in text
    assert "Name:\ta" in text
    assert "Path:\t/data/b.tif" in text
    assert "Channel:\tGreen" in text
    assert "Threshold:\t100" in text
    assert "Pearson correlation:\t1.0\t1.0\t" in text


def test_save_result(tmp_path):
    meta, matrix = save_result(checker_result(), tmp_path / "out")
    assert Path(meta).name == "Metadata_a_vs_b__Red_vs_Green.txt"
    assert Path(matrix).name == "Matrix_a_vs_b__Red_vs_Green.txt"
    assert Path(matrix).read_text(encoding="utf-8").startswith("Colocalization matrix for X:a")


def test_result_folder():
    folder = result_folder("/data/run/a.tif", datetime(2024, 1, 2, 3, 4, 5))
    assert folder == Path("/data/run/colocalization_results/2024-01-02/03-04-05")


# -----------------------
# Config
# -----------------------

def test_config_defaults():
    config = ColocConfig()
    assert (config.red_threshold, config.green_threshold, config.blue_threshold) == (75, 75, 75)
    assert config.mask_threshold == 100
    assert config.channels_in_one_row is True
    assert config.skip_pearson_below_threshold is False


def test_config_is_immutable():
    config = ColocConfig()
    with pytest.raises(AttributeError):
        config.red_threshold = 1
    changed = config.with_thresholds(red=10, blue=20)
    assert (changed.red_threshold, changed.green_threshold, changed.blue_threshold) == (10, 75, 20)
    assert config.red_threshold == 75


def test_config_from_plugin_properties():
    config = ColocConfig.from_mapping({
        "red_threshold": "40",
        "show_channels_in_one_row": "false",
        "skip_pixels_below_threshold_for_Pearson_correlasion": "true",
        "show_color_coded_colocalization_plot": True,
        "unknown_key": "ignored",
    })
    assert config.red_threshold == 40
    assert config.channels_in_one_row is False
    assert config.skip_pearson_below_threshold is True
    assert config.show_color_coloc is True
