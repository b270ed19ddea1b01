"""schedbot - scheduled agent task processing."""

__version__ = "0.1.0"
