"""Romanian ID document preprocessing and structured field extraction."""

__version__ = "0.1.0"
