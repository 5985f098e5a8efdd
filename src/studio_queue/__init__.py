"""Generation job queue for image and video studio requests."""

__version__ = "0.1.0"
