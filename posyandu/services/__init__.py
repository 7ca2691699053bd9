"""
Services Package
"""
from .records import RecordsService

__all__ = ["RecordsService"]
