"""Query-time ranking over persisted sections and chunks."""
