"""Adapters for the catalog, stream resolution, audio output, lyrics and session state."""
