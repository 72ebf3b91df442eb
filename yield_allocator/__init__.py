"""Yield-farming allocation simulator with profit and risk analytics."""

__version__ = "0.1.0"
