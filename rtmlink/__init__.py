"""rtmlink - resilient client for real-time messaging websocket APIs."""

__version__ = "0.1.0"
