"""Video acquisition, preview and clip export service."""

__version__ = "0.3.0"
