"""Depscope - incremental architectural dependency checks over compiled artifacts."""

__version__ = "0.4.0"
