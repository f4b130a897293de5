"""Narrated video generator: script to narration, scene images and a rendered video."""

__version__ = "0.1.0"
