"""
Tests for rgbcoloc.pairs: channel pairs, the three-channel chain and report merging.
"""

import logging
import math

import numpy as np
import pytest

from rgbcoloc.config import BLUE_LABEL, GREEN_LABEL, MASK_LABEL, MASK_THRESHOLD, RED_LABEL, ColocConfig
from rgbcoloc.core import DimensionMismatchError
from rgbcoloc.pairs import (
    ChannelImage,
    analyze_channels,
    build_channel,
    colocalize_pair,
    colocalize_three_channels,
    mask_channel,
)
from rgbcoloc.report import RESULTS_TITLE
from rgbcoloc.visualization import ORANGE, RED


def random_stack(n_slices, shape=(16, 20), seed=0):
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(n_slices,) + shape, dtype=np.uint8)


def channels(n_red=2, n_green=2, n_blue=2, config=None, shape=(16, 20)):
    config = config or ColocConfig()
    return (
        build_channel(random_stack(n_red, shape, seed=1), RED_LABEL, config, title="img_r"),
        build_channel(random_stack(n_green, shape, seed=2), GREEN_LABEL, config, title="img_g"),
        build_channel(random_stack(n_blue, shape, seed=3), BLUE_LABEL, config, title="img_b"),
    )


def test_build_channel_uses_config():
    config = ColocConfig(red_threshold=12, green_threshold=34, blue_threshold=56)
    red = build_channel(np.zeros((4, 4), np.uint8), RED_LABEL, config)
    assert red.threshold == 12
    assert red.color == RED
    assert red.title == RED_LABEL
    assert red.n_slices == 1
    assert build_channel(np.zeros((4, 4), np.uint8), BLUE_LABEL, config).threshold == 56
    with pytest.raises(ValueError):
        build_channel(np.zeros((4, 4), np.uint8), "Cyan", config)


def test_pair_uses_shorter_stack():
    red, green, _ = channels(n_red=5, n_green=3)
    result = colocalize_pair(red, green, ColocConfig())
    assert result.n_slices == 3
    assert result.pair_title == "img_r vs img_g"
    assert result.channels_title == "Red vs Green"
    rows = result.to_report_rows()
    assert [r.slice_index for r in rows] == [1, 2, 3]
    assert result.mask_stack.shape == (3, 16, 20)
    assert result.histogram_stack.shape == (3, 256, 256)


def test_pair_plots_follow_config():
    red, green, _ = channels()
    plain = colocalize_pair(red, green, ColocConfig())
    assert plain.color_stack is None
    assert plain.intensity_stack is None
    shown = colocalize_pair(red, green, ColocConfig(show_color_coloc=True, show_intensity_coloc=True))
    assert shown.color_stack.shape == (2, 256, 256, 3)
    assert shown.intensity_stack.shape == (2, 256, 256, 3)


def test_pair_dimension_mismatch():
    red, _, _ = channels()
    other = build_channel(random_stack(2, (16, 21)), GREEN_LABEL, ColocConfig())
    with pytest.raises(DimensionMismatchError):
        colocalize_pair(red, other, ColocConfig())


def test_parallel_matches_serial():
    red, green, _ = channels(n_red=6, n_green=6)
    serial = colocalize_pair(red, green, ColocConfig(max_workers=1))
    parallel = colocalize_pair(red, green, ColocConfig(max_workers=4))
    assert serial.statistics == parallel.statistics
    np.testing.assert_array_equal(serial.mask_stack, parallel.mask_stack)


def test_mask_channel():
    red, green, _ = channels()
    result = colocalize_pair(red, green, ColocConfig())
    pseudo = mask_channel(result)
    assert pseudo.label == MASK_LABEL
    assert pseudo.threshold == MASK_THRESHOLD
    assert pseudo.color == ORANGE
    assert set(np.unique(pseudo.stack)) <= {0, 255}


def test_three_channel_chain_counts():
    config = ColocConfig(red_threshold=100, green_threshold=100, blue_threshold=150)
    red, green, blue = channels(config=config)
    rg = colocalize_pair(red, green, config)
    three = colocalize_three_channels(blue, rg, config)
    assert three.label1 == BLUE_LABEL
    assert three.label2 == MASK_LABEL
    assert three.threshold2 == MASK_THRESHOLD
    assert three.color_stack is None
    assert three.intensity_stack is None
    in_mask = (red.stack >= 100) & (green.stack >= 100)
    above_blue = blue.stack >= 150
    for i, stats in enumerate(three.statistics):
        assert stats.counts.colocalized == int(np.sum(above_blue[i] & in_mask[i]))
        assert stats.counts.ch2_only == int(np.sum(~above_blue[i] & in_mask[i]))


def test_analyze_order_and_one_row_truncation():
    red, green, blue = channels(n_red=5, n_green=3, n_blue=5)
    analysis = analyze_channels(red, green, blue, ColocConfig(channels_in_one_row=True))
    assert [r.channels_title for r in analysis.pair_results] == ["Red vs Blue", "Green vs Blue", "Red vs Green"]
    assert [r.n_slices for r in analysis.pair_results] == [5, 3, 3]
    assert len(analysis.pair_lines) == 3
    assert all(len(line) == 3 for line in analysis.pair_lines)
    text = analysis.pair_report_text()
    assert text.startswith(RESULTS_TITLE * 3 + "\n")
    assert len(text.splitlines()) == 1 + 3
    assert analysis.three_channel_result.label2 == MASK_LABEL
    assert len(analysis.three_channel_lines) == 3


def test_analyze_stacked_rows():
    red, green, blue = channels(n_red=5, n_green=3, n_blue=5)
    analysis = analyze_channels(red, green, blue, ColocConfig(channels_in_one_row=False))
    assert len(analysis.pair_lines) == 5 + 3 + 3
    assert all(len(line) == 1 for line in analysis.pair_lines)
    assert analysis.pair_header == RESULTS_TITLE
    df = analysis.pair_dataframe()
    assert len(df) == 11
    assert list(df["Ch1 vs Ch2"][:5]) == ["Red vs Blue"] * 5


def test_analyze_two_channels():
    red, green, _ = channels()
    analysis = analyze_channels(red=red, green=green)
    assert [r.channels_title for r in analysis.pair_results] == ["Red vs Green"]
    assert analysis.three_channel_result is None
    assert analysis.three_channel_lines == []
    assert analysis.three_channel_dataframe().empty


def test_analyze_skips_mismatched_pairs(caplog):
    config = ColocConfig()
    red, green, _ = channels()
    blue = build_channel(random_stack(2, (10, 10), seed=4), BLUE_LABEL, config, title="small_b")
    with caplog.at_level(logging.ERROR, logger="rgbcoloc.pairs"):
        analysis = analyze_channels(red, green, blue, config)
    assert [r.channels_title for r in analysis.pair_results] == ["Red vs Green"]
    assert analysis.three_channel_result is None
    assert "small_b" in caplog.text
    assert len(analysis.pair_lines) == 2


def test_nan_statistics_render_as_text():
    config = ColocConfig()
    flat = ChannelImage(title="flat", label=RED_LABEL, stack=np.full((1, 4, 4), 10, np.uint8), threshold=75, color=RED)
    other = build_channel(random_stack(1, (4, 4)), GREEN_LABEL, config)
    analysis = analyze_channels(red=flat, green=other, config=config)
    stats = analysis.pair_results[0].statistics[0]
    assert math.isnan(stats.pearson)
    assert "NaN" in analysis.pair_report_text()
