"""Context Import: normalize issues, code, email, files and text into context items."""

__version__ = "0.4.0"
