"""Real-time chat relay over persistent bidirectional channels."""

__version__ = "0.1.0"
