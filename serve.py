from fastapi import FastAPI
import gradio as gr
from rgbColocalizer import build_ui, configure_logging

configure_logging()
demo = build_ui().queue()

# The outer ASGI app carries root_path so links work behind the proxy prefix
app = FastAPI(root_path="/rgbcoloc")

# Gradio is mounted at "/" (the outer root_path absorbs /rgbcoloc)
app = gr.mount_gradio_app(app, demo, path="/")
