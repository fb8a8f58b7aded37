"""PostgreSQL LISTEN/NOTIFY bridge to external handler programs."""

__version__ = "0.1.0"
