"""
Progress module - Completion event pipeline
"""
from .service import ProgressService

__all__ = ['ProgressService']
