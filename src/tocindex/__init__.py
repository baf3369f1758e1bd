"""TOC-driven section extraction, chunking and retrieval for long study materials."""

__version__ = "0.1.0"
