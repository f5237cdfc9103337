"""Showdown lineup optimization engine for League of Legends DFS."""

__version__ = "0.1.0"
