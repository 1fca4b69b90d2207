"""Tools for building and testing small distributed systems."""

__version__ = "0.1.0"