"""
Core module for the Container Gateway
"""

from src.core.config import settings

__all__ = ["settings"]
