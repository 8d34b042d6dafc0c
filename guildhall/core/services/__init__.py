"""
Service wiring for Guildhall.
"""

from guildhall.core.services.container import ServiceContainer

__all__ = ["ServiceContainer"]
