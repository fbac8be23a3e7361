"""Batch SRT subtitle translation through a language-model queue."""

__version__ = "1.0.0"
