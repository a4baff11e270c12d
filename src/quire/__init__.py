"""Quire: builds a static site from post and project content collections."""

__version__ = "0.3.0"
