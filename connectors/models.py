"""
This module re-exports the CalendarLink model from the database package for use in connector-related code.
"""

from database.models import CalendarLink  # noqa: F401

__all__ = ["CalendarLink"]
