"""Rendering engine: templates, cross-references and link verification."""
