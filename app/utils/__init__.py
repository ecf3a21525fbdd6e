# app/utils/__init__.py
"""
Utility package.

Helpers shared by every layer of the project.
"""

from .datetime_utils import DateTimeUtils

__all__ = ['DateTimeUtils']
