"""Branching-story core: tree model, path tracking, and ranking."""

__version__ = "0.1.0"
