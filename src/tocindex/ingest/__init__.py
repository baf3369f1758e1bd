"""Turn TOC analyses and page texts into bounded, persisted sections and chunks."""
