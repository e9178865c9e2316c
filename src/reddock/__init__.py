"""reddock - redroid add-on manager."""

__version__ = "0.1.0"
