# RGB Colocalizer Gradio App
"""
Pixel colocalization of Red, Green and Blue channel stacks with Gradio.

Pairs:
1. Red vs Blue
2. Green vs Blue
3. Red vs Green
4. Blue vs the colocalized Red/Green pixels

Run `python rgbColocalizer.py` for the local UI or `uvicorn serve:app` to
serve it behind a reverse proxy.
"""

import logging

from rgbcoloc import build_ui

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level=logging.INFO):
    logging.basicConfig(level=level, format=LOG_FORMAT)


if __name__ == "__main__":
    configure_logging()
    demo = build_ui()
    demo.queue().launch()
