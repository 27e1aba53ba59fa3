# Steamshelf backend package
# Mirrors an owned Steam library into a local SQLite store, enriched with IGDB metadata.

__version__ = "0.3.0"
