"""
Gradio UI for RGB Colocalizer.

Two tabs:
1. 🎨 Separate channels: one uploaded stack per channel
2. 🖼️ One 3-channel image: one RGB stack split into Red, Green and Blue

Thresholds, plot options and results are shared by both tabs.
"""

import gradio as gr

from rgbcoloc.config import DEFAULT_THRESHOLD, ColocConfig
from rgbcoloc.ui_callbacks import create_callbacks


def build_ui():
    defaults = ColocConfig()
    with gr.Blocks(title="RGB Colocalizer") as demo:
        gr.Markdown(
            """
            # 🔬 **RGB Colocalizer**
            *Pixel colocalization of Red, Green and Blue fluorescence channels*


            1. Upload the channel stacks (or one RGB stack).
            2. Set a noise threshold per channel (or estimate it with IsoData).
            3. Run: Red vs Blue, Green vs Blue, Red vs Green and Blue vs the Red/Green colocalized pixels.

            Pixels at or above a channel's threshold count as signal in that channel.
            """
        )

        with gr.Tabs():
            # ==================== Tab 1: Separate channels ====================
            with gr.TabItem("🎨 Separate channels", id=0):
                with gr.Row():
                    red_file = gr.File(label="Red channel (TIFF stack or image)", file_types=["image", ".tif", ".tiff"])
                    green_file = gr.File(label="Green channel (TIFF stack or image)", file_types=["image", ".tif", ".tiff"])
                    blue_file = gr.File(label="Blue channel (TIFF stack or image)", file_types=["image", ".tif", ".tiff"])
                with gr.Row():
                    auto_sep_btn = gr.Button("Auto thresholds (IsoData)")
                    run_sep_btn = gr.Button("Run colocalization", variant="primary")

            # ==================== Tab 2: One 3-channel image ====================
            with gr.TabItem("🖼️ One 3-channel image", id=1):
                rgb_file = gr.File(label="RGB image (TIFF stack or image)", file_types=["image", ".tif", ".tiff"])
                with gr.Row():
                    auto_rgb_btn = gr.Button("Auto thresholds (IsoData)")
                    run_rgb_btn = gr.Button("Run colocalization", variant="primary")

        with gr.Accordion("Thresholds", open=True):
            with gr.Row():
                red_th = gr.Slider(0, 255, value=DEFAULT_THRESHOLD, step=1, label="Red threshold")
                green_th = gr.Slider(0, 255, value=DEFAULT_THRESHOLD, step=1, label="Green threshold")
                blue_th = gr.Slider(0, 255, value=DEFAULT_THRESHOLD, step=1, label="Blue threshold")

        with gr.Accordion("Options", open=False):
            show_color = gr.Checkbox(value=defaults.show_color_coloc, label="Show color-coded colocalization plot")
            show_intensity = gr.Checkbox(value=defaults.show_intensity_coloc, label="Show intensity-coded colocalization plot")
            show_coloc_image = gr.Checkbox(value=defaults.show_coloc_image, label="Show colocalized image")
            one_row = gr.Checkbox(value=defaults.channels_in_one_row, label="Show channels in one row")
            skip_pearson = gr.Checkbox(
                value=defaults.skip_pearson_below_threshold,
                label="Skip pixels below threshold for Pearson correlation",
            )
            max_workers = gr.Slider(1, 16, value=defaults.max_workers, step=1, label="Worker threads per pair (slices in parallel)")

        gr.Markdown("## Results")
        pair_table = gr.Dataframe(label="Channel pairs", interactive=False)
        three_table = gr.Dataframe(label="Blue vs Red+Green colocalized", interactive=False)
        with gr.Row():
            report_files = gr.File(label="Download reports, metadata and matrices", file_count="multiple")
            tiff_files = gr.File(label="Download masks and plots (TIFF stacks)", file_count="multiple")
        color_gallery = gr.Gallery(label="Color-coded colocalization", columns=3, height="auto")
        intensity_gallery = gr.Gallery(label="Intensity-coded colocalization", columns=3, height="auto")
        mask_gallery = gr.Gallery(label="Colocalized pixels", columns=3, height="auto")

        components = {
            'red_file': red_file,
            'green_file': green_file,
            'blue_file': blue_file,
            'rgb_file': rgb_file,
            'auto_sep_btn': auto_sep_btn,
            'run_sep_btn': run_sep_btn,
            'auto_rgb_btn': auto_rgb_btn,
            'run_rgb_btn': run_rgb_btn,
            'red_th': red_th,
            'green_th': green_th,
            'blue_th': blue_th,
            'show_color': show_color,
            'show_intensity': show_intensity,
            'show_coloc_image': show_coloc_image,
            'one_row': one_row,
            'skip_pearson': skip_pearson,
            'max_workers': max_workers,
            'pair_table': pair_table,
            'three_table': three_table,
            'report_files': report_files,
            'tiff_files': tiff_files,
            'color_gallery': color_gallery,
            'intensity_gallery': intensity_gallery,
            'mask_gallery': mask_gallery,
        }
        create_callbacks(components)

    return demo


if __name__ == "__main__":
    demo = build_ui()
    demo.queue().launch()
