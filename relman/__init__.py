"""relman: update manifest resolution and publication."""

__version__ = "0.3.0"
