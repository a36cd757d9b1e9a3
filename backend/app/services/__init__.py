"""
Business logic services
"""
from .container import ServiceContainer

__all__ = ['ServiceContainer']
