"""Monitoring module for logging."""

from .logger import Logger

__all__ = ["Logger"]
