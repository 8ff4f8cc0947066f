"""EA Financial consumer accounts internal API."""

__version__ = "1.0.0"
