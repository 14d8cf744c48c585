"""kele -- terminal AI assistant runtime."""

__version__ = "0.4.0"
