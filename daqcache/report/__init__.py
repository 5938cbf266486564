"""Terminal reporting of publish and batch results.

Modules
-------
renderer
    ``ResultsRenderer`` turns a ``BatchResult`` into a Rich panel with one
    row per coordinate.
"""
