"""Streaming translation and text recognition over OpenAI-compatible APIs."""

__version__ = "1.0.0"
