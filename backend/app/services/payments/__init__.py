"""
Payments module - Tinkoff Acquiring orders and notifications
"""
from .service import PaymentService
from .tokens import generate_token, verify_token

__all__ = ['PaymentService', 'generate_token', 'verify_token']
