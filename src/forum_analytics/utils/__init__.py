"""Utility helpers for forum analytics."""

from .logging import setup_logging

__all__ = ["setup_logging"]
