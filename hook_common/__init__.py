"""
Deploy Hook common module.

This module contains shared domain models and interfaces used across
the hook components (jenkins, persistence, server, admin).

The common module has no dependencies on other hook_* modules, making it
a pure domain layer that can be imported by any component.
"""

from .cache import Cache, MemoryCache
from .models import Deploy, TriggeredJob
from .repository import TriggeredJobRepository

__all__ = ["Cache", "Deploy", "MemoryCache", "TriggeredJob", "TriggeredJobRepository"]
