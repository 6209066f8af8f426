"""Shoplinker product extractor."""

__version__ = "0.1.0"
