"""Media auto-upload engine."""

__version__ = "0.1.0"
