"""
Chat module - Plain-text command handling for the chat transport
"""
from .commands import CommandRouter, parse_command, parse_referral_code

__all__ = ['CommandRouter', 'parse_command', 'parse_referral_code']
