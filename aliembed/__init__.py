# aliembed/__init__.py
"""
AliEmbed package initializer.
Defines package version; the CLI lives in :mod:`aliembed.cli`.
"""
__version__ = "0.1.0"
