"""
Ads module - In-chat ads for free users
"""
from .service import AdService

__all__ = ['AdService']
