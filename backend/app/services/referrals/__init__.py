"""
Referrals module - Two-stage referral protocol
"""
from .service import ReferralService, build_invite_link

__all__ = ['ReferralService', 'build_invite_link']
