"""nexuflex: terminal client for the nexuflex remote command server."""

__version__ = "0.1.0"
