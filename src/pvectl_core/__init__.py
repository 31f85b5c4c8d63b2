"""Resource mutation pipeline for pvectl."""

__version__ = "0.1.0"
