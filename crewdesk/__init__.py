"""Route requests to a team of AI providers."""

__version__ = "0.1.0"
