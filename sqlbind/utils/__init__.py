"""Utility functions and classes for sqlbind."""

from sqlbind.utils import logging, millis, text

__all__ = ("logging", "millis", "text")
