"""Static analysis of server/client component projects."""

__version__ = "0.6.0"
