"""Draftwise: email rewriting and slide generation."""

__version__ = "1.0.0"
