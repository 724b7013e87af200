"""Resonance - track similarity, taste clustering and prefetch engine."""

__version__ = "0.1.0"
