"""
Users module - Registration and profiles
"""
from .service import UserService

__all__ = ['UserService']
