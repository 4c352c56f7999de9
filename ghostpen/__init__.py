"""Ghostpen -- a ghostwriting agent that drafts posts in the author's voice."""

__version__ = "1.0.0"
