"""
Promocodes Service - Admin-issued discount codes

A user applies a code before paying; the code rides on their next payment
and is counted as used once that payment is confirmed. The price uses
whichever is larger: the promo discount or the referral discount.
"""
from typing import List, Optional, Tuple
import logging

from app.core.exceptions import (
    InvalidPromocodeError,
    PromocodeAlreadyUsedError,
    PromocodeExhaustedError,
    PromocodeExistsError,
    PromocodeNotFoundError,
    UserNotFoundError
)
from app.models import CreatePromocodeRequest, Promocode, User
from app.models.promocode import normalize_promocode

logger = logging.getLogger(__name__)


class PromocodeService:
    def __init__(self, repo):
        self.repo = repo

    # ========================================================================
    # ADMIN
    # ========================================================================

    def create_promocode(self, request: CreatePromocodeRequest) -> Promocode:
        """
        Raises:
            PromocodeExistsError: If the code is already taken
            DatabaseError: If database operation fails
        """
        promo = self.repo.create_promocode_if_absent(request.code, request.discount_percent, request.max_uses)
        if promo is None:
            raise PromocodeExistsError(f"Promo code {request.code} already exists")
        logger.info(f"[PROMO] Created {promo.code}: {promo.discount_percent}% (limit {promo.max_uses})")
        return promo

    def list_promocodes(self) -> List[Promocode]:
        return self.repo.list_promocodes()

    def set_active(self, code: str, is_active: bool) -> Promocode:
        promo = self.repo.set_promocode_active(normalize_promocode(code), is_active)
        if promo is None:
            raise PromocodeNotFoundError(f"Promo code {code} not found")
        logger.info(f"[PROMO] {promo.code} {'enabled' if is_active else 'disabled'}")
        return promo

    def delete_promocode(self, code: str) -> None:
        if not self.repo.delete_promocode(normalize_promocode(code)):
            raise PromocodeNotFoundError(f"Promo code {code} not found")
        logger.info(f"[PROMO] Deleted {normalize_promocode(code)}")

    # ========================================================================
    # USERS
    # ========================================================================

    def apply_promocode(self, user_id: int, code: str) -> Promocode:
        """
        Attach a promo code to the user's next payment

        A newly applied code replaces any code applied earlier.

        Args:
            user_id: User applying the code
            code: Code as typed by the user

        Returns:
            The applied Promocode

        Raises:
            UserNotFoundError: If the user does not exist
            InvalidPromocodeError: If the code is unknown or switched off
            PromocodeExhaustedError: If the code has reached its usage limit
            PromocodeAlreadyUsedError: If the user already paid with this code
            DatabaseError: If database operation fails
        """
        if self.repo.get_user_by_id(user_id) is None:
            raise UserNotFoundError(f"User {user_id} not found")

        promo = self.repo.get_promocode_by_code(normalize_promocode(code))
        if promo is None or not promo.is_active:
            raise InvalidPromocodeError("Promo code not found")
        if promo.is_exhausted:
            raise PromocodeExhaustedError("This promo code is no longer valid")
        if self.repo.has_used_promocode(user_id, promo.id):
            raise PromocodeAlreadyUsedError("You have already used this promo code")

        self.repo.set_active_promocode(user_id, promo.id)
        logger.info(f"[PROMO] User {user_id} applied {promo.code} ({promo.discount_percent}%)")
        return promo

    def active_promocode(self, user: User) -> Optional[Promocode]:
        """The user's applied code, if it can still be redeemed"""
        if user.active_promocode_id is None:
            return None
        promo = self.repo.get_promocode_by_id(user.active_promocode_id)
        if promo is None or not promo.is_redeemable:
            return None
        return promo

    def best_discount(self, user: User) -> Tuple[int, Optional[Promocode]]:
        """
        Discount for the user's next payment

        Returns:
            Tuple of (discount_percent, promo code that set it or None when
            the referral discount is at least as large)
        """
        promo = self.active_promocode(user)
        if promo is not None and promo.discount_percent > user.discount_percent:
            return promo.discount_percent, promo
        return user.discount_percent, None

    def redeem(self, user_id: int, promocode_id: int) -> bool:
        """
        Count a promo code as used by a confirmed payment and detach it

        Returns:
            True if this call recorded the usage
        """
        recorded = self.repo.record_promocode_usage(promocode_id, user_id)
        self.repo.clear_active_promocode(user_id, promocode_id)
        if recorded:
            logger.info(f"[PROMO] User {user_id} redeemed promocode {promocode_id}")
        return recorded
