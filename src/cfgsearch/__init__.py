"""Rate-limited configuration search against a remote scoring service."""

__version__ = "0.1.0"
