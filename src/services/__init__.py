"""
Services module for the Container Gateway
"""

from src.services.lifecycle_controller import LifecycleController

__all__ = [
    "LifecycleController"
]
