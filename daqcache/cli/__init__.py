"""daqcache CLI — Typer-based command-line interface.

Provides the ``daqcache`` command with subcommands for publishing a single
coordinate, publishing a whole suite from its build config, and writing a
default build config.

Rich output goes to stderr; stdout carries only the summary line.
"""
