"""
Broadcasts module - Admin mass messaging
"""
from .service import BroadcastService

__all__ = ['BroadcastService']
