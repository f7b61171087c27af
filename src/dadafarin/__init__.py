"""Dadafarin: subscription-gated Persian legal assistant backend."""

__version__ = "0.4.0"
