"""Streaming response relay for an LLM-serving gateway."""

__version__ = "0.1.0"
