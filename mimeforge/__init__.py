"""Compose, encode, split, classify and inspect MIME e-mail messages."""

__version__ = "0.1.0"

__all__ = ["boundary", "builder", "detect", "dsn", "markdown", "part"]