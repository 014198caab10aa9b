"""Data layer of the Patinfly bike rental client: local cache, bundled seeds and the remote API."""

__version__ = "1.0.0"
