"""Real-time OCR / voice translation pipeline."""

__version__ = "0.1.0"
