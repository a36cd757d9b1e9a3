"""
Promocodes module - Admin-issued discount codes
"""
from .service import PromocodeService

__all__ = ['PromocodeService']
