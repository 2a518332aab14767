"""
Callback functions for the RGB Colocalizer UI.
"""

import logging
import os
import tempfile

import gradio as gr
from PIL import Image

from rgbcoloc.config import BLUE_LABEL, GREEN_LABEL, RED_LABEL, ColocConfig
from rgbcoloc.core import auto_threshold, pil_to_stack, split_channels, to_8bit_channel
from rgbcoloc.pairs import analyze_channels, build_channel
from rgbcoloc.report import result_file_stem, result_folder, save_result
from rgbcoloc.visualization import save_mask_stack_tiff, save_rgb_stack_tiff, stack_to_gallery

logger = logging.getLogger(__name__)

_CHANNEL_OF_LABEL = {RED_LABEL: "r", GREEN_LABEL: "g", BLUE_LABEL: "b"}


def _extract_path(obj):
    if obj is None:
        return None
    if isinstance(obj, str):
        return obj
    if hasattr(obj, 'name') and isinstance(obj.name, str):
        return obj.name
    if isinstance(obj, dict):
        return obj.get('path') or obj.get('name')
    if isinstance(obj, (list, tuple)) and obj:
        it = obj[0]
        if isinstance(it, dict):
            return it.get('path') or it.get('name')
        if isinstance(it, str):
            return it
    return None


def _image_title(path):
    return os.path.splitext(os.path.basename(path))[0]


def load_stack(path):
    """Read every frame of an image file into a numpy stack."""
    with Image.open(path) as img:
        return pil_to_stack(img)


def load_channel(file_obj, label, config):
    """ChannelImage for one uploaded file; RGB files contribute the plane matching `label`."""
    path = _extract_path(file_obj)
    if not path:
        return None
    stack = to_8bit_channel(load_stack(path), _CHANNEL_OF_LABEL[label])
    return build_channel(stack, label, config, title=_image_title(path), path=path)


def load_rgb_channels(file_obj, config):
    path = _extract_path(file_obj)
    if not path:
        return None, None, None
    title = _image_title(path)
    red, green, blue = split_channels(load_stack(path))
    return tuple(
        build_channel(stack, label, config, title=f"{title}_{label}", path=path)
        for stack, label in ((red, RED_LABEL), (green, GREEN_LABEL), (blue, BLUE_LABEL))
    )


def make_config(r_th, g_th, b_th, show_c, show_i, show_m, one_row, skip, workers):
    return ColocConfig(
        red_threshold=int(r_th),
        green_threshold=int(g_th),
        blue_threshold=int(b_th),
        show_color_coloc=bool(show_c),
        show_intensity_coloc=bool(show_i),
        show_coloc_image=bool(show_m),
        channels_in_one_row=bool(one_row),
        skip_pearson_below_threshold=bool(skip),
        max_workers=max(1, int(workers)),
    )


def _output_folder():
    # colocalization_results/<date>/<time> under a fresh temp dir
    base = tempfile.mkdtemp(prefix="rgbcoloc_")
    return result_folder(os.path.join(base, "analysis"))


def run_analysis(channels, config):
    """Run all pairs and write the result files.

    Returns the outputs in UI order: pair table, three-channel table, report
    files, TIFF files and the three galleries.
    """
    red, green, blue = channels
    present = [c for c in channels if c is not None]
    if len(present) < 2:
        raise gr.Error("Upload at least two channels")
    logger.info("Analyzing %s", ", ".join(f"{c.label}: {c.title}" for c in present))

    analysis = analyze_channels(red, green, blue, config)
    if not analysis.pair_results:
        raise gr.Error("No channel pair could be colocalized; the images differ in size")

    folder = _output_folder()
    folder.mkdir(parents=True, exist_ok=True)
    report_paths = []
    pair_report = folder / "Colocalization_results.txt"
    pair_report.write_text(analysis.pair_report_text() + "\n", encoding="utf-8")
    report_paths.append(str(pair_report))
    if analysis.three_channel_lines:
        three_report = folder / "Three_channel_colocalization_results.txt"
        three_report.write_text(analysis.three_channel_report_text() + "\n", encoding="utf-8")
        report_paths.append(str(three_report))

    results = list(analysis.pair_results)
    if analysis.three_channel_result is not None:
        results.append(analysis.three_channel_result)

    tiff_paths = []
    color_items, intensity_items, mask_items = [], [], []
    for result in results:
        report_paths.extend(save_result(result, folder))
        stem = result_file_stem(result).replace(os.sep, "_")
        tiff_paths.append(save_mask_stack_tiff(result.mask_stack, f"Colocalized_{stem}"))
        if result.color_stack is not None:
            tiff_paths.append(save_rgb_stack_tiff(result.color_stack, f"Color_coded_{stem}"))
            color_items += stack_to_gallery(result.color_stack, result.channels_title)
        if result.intensity_stack is not None:
            tiff_paths.append(save_rgb_stack_tiff(result.intensity_stack, f"Intensity_coded_{stem}"))
            intensity_items += stack_to_gallery(result.intensity_stack, result.channels_title)
        if config.show_coloc_image:
            mask_items += stack_to_gallery(result.mask_stack, f"Colocalized {result.channels_title}")
    logger.info("Results written to %s", folder)

    return (
        analysis.pair_dataframe(),
        analysis.three_channel_dataframe(),
        report_paths,
        tiff_paths,
        color_items,
        intensity_items,
        mask_items,
    )


def create_callbacks(components):
    """
    Wire up all callbacks for both tabs.

    Args:
        components: Dict containing all Gradio components from the UI
    """

    # Extract components
    red_file = components['red_file']
    green_file = components['green_file']
    blue_file = components['blue_file']
    rgb_file = components['rgb_file']
    auto_sep_btn = components['auto_sep_btn']
    run_sep_btn = components['run_sep_btn']
    auto_rgb_btn = components['auto_rgb_btn']
    run_rgb_btn = components['run_rgb_btn']

    red_th = components['red_th']
    green_th = components['green_th']
    blue_th = components['blue_th']
    settings = [
        red_th, green_th, blue_th,
        components['show_color'],
        components['show_intensity'],
        components['show_coloc_image'],
        components['one_row'],
        components['skip_pearson'],
        components['max_workers'],
    ]
    outputs = [
        components['pair_table'],
        components['three_table'],
        components['report_files'],
        components['tiff_files'],
        components['color_gallery'],
        components['intensity_gallery'],
        components['mask_gallery'],
    ]

    # Separate channels
    def _run_separate(red_f, green_f, blue_f, *opts):
        config = make_config(*opts)
        try:
            channels = (
                load_channel(red_f, RED_LABEL, config),
                load_channel(green_f, GREEN_LABEL, config),
                load_channel(blue_f, BLUE_LABEL, config),
            )
        except (OSError, ValueError) as e:
            logger.error("Failed to load channels: %s", e)
            raise gr.Error(str(e))
        return run_analysis(channels, config)

    run_sep_btn.click(
        fn=_run_separate,
        inputs=[red_file, green_file, blue_file] + settings,
        outputs=outputs,
    )

    def _auto_separate(red_f, green_f, blue_f):
        values = []
        for file_obj, label in ((red_f, RED_LABEL), (green_f, GREEN_LABEL), (blue_f, BLUE_LABEL)):
            path = _extract_path(file_obj)
            if not path:
                values.append(gr.update())
                continue
            try:
                stack = to_8bit_channel(load_stack(path), _CHANNEL_OF_LABEL[label])
            except (OSError, ValueError) as e:
                raise gr.Error(str(e))
            values.append(auto_threshold(stack))
        return tuple(values)

    auto_sep_btn.click(
        fn=_auto_separate,
        inputs=[red_file, green_file, blue_file],
        outputs=[red_th, green_th, blue_th],
    )

    # One 3-channel image
    def _run_rgb(rgb_f, *opts):
        config = make_config(*opts)
        try:
            channels = load_rgb_channels(rgb_f, config)
        except (OSError, ValueError) as e:
            logger.error("Failed to load RGB image: %s", e)
            raise gr.Error(str(e))
        return run_analysis(channels, config)

    run_rgb_btn.click(
        fn=_run_rgb,
        inputs=[rgb_file] + settings,
        outputs=outputs,
    )

    def _auto_rgb(rgb_f):
        path = _extract_path(rgb_f)
        if not path:
            return gr.update(), gr.update(), gr.update()
        try:
            stacks = split_channels(load_stack(path))
        except (OSError, ValueError) as e:
            raise gr.Error(str(e))
        return tuple(auto_threshold(s) for s in stacks)

    auto_rgb_btn.click(
        fn=_auto_rgb,
        inputs=[rgb_file],
        outputs=[red_th, green_th, blue_th],
    )
