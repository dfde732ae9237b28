"""Order tracking API with realtime status updates."""

__version__ = "1.0.0"
