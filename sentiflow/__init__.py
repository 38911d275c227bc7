"""Sentiflow — asynchronous language-aware sentiment analysis workflows."""

__version__ = "0.1.0"
