"""
Deterministic toy computations behind the concept visualizer.

Each module is a small set of pure functions mapping (parameters, cursor)
to a numpy artifact. Nothing here knows about Gradio or Plotly.
"""
__version__ = "0.3.0"
