"""RSS feed to TV channel page and episode API."""

__version__ = "1.0.0"
