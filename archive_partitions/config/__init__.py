"""
Configuration package for the archive partition service
Exports settings from settings.py for easy import
"""
from .settings import settings

__all__ = ["settings"]
