"""
Payments Service - Tinkoff Acquiring integration
Creates payment orders, processes gateway notifications and credits
subscription days exactly once per confirmed payment
"""
from datetime import datetime
from typing import Any, Callable, Dict, Optional
import logging
import uuid

import requests

from app.core.config import settings
from app.core.constants import SUBSCRIPTION_DAYS, HTTP_TIMEOUT_SECONDS
from app.core.exceptions import (
    DatabaseError,
    PaymentGatewayError,
    PaymentNotFoundError,
    PaymentVerificationError,
    UserNotFoundError
)
from app.models import Payment, PaymentConfirmed, PaymentStatus
from app.models.payment import normalize_gateway_status
from app.utils.timezone import get_reference_now
from .tokens import generate_token, verify_token

logger = logging.getLogger(__name__)

TINKOFF_API_URL = "https://securepay.tinkoff.ru/v2"
TINKOFF_TEST_API_URL = "https://rest-api-test.tinkoff.ru/v2"


class PaymentService:
    """Payment flow over the Tinkoff v2 REST API"""

    def __init__(self, repo, subscriptions, promocodes, http: Optional[requests.Session] = None,
                 clock: Callable[[], datetime] = get_reference_now,
                 terminal_key: Optional[str] = None, password: Optional[str] = None,
                 test_mode: Optional[bool] = None, price: Optional[int] = None):
        self.repo = repo
        self.subscriptions = subscriptions
        self.promocodes = promocodes
        self.http = http or requests.Session()
        self.clock = clock
        self.terminal_key = settings.TINKOFF_TERMINAL_KEY if terminal_key is None else terminal_key
        self.password = settings.TINKOFF_PASSWORD if password is None else password
        self.test_mode = settings.TINKOFF_TEST_MODE if test_mode is None else test_mode
        self.price = settings.SUBSCRIPTION_PRICE if price is None else price

    @property
    def api_url(self) -> str:
        return TINKOFF_TEST_API_URL if self.test_mode else TINKOFF_API_URL

    def is_configured(self) -> bool:
        return bool(self.terminal_key and self.password)

    def _post(self, method: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """
        Call a gateway method and return its JSON body

        Raises:
            PaymentGatewayError: On transport failure or an unsuccessful reply
        """
        url = f"{self.api_url}/{method}"
        try:
            response = self.http.post(url, json=body, timeout=HTTP_TIMEOUT_SECONDS)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"[PAYMENT] {method} request failed: {e}")
            raise PaymentGatewayError(f"{method} request failed: {e}")

        if not data.get("Success"):
            logger.error(f"[PAYMENT] {method} rejected: {data.get('ErrorCode')} - {data.get('Message')}")
            raise PaymentGatewayError(f"Gateway error {data.get('ErrorCode')}: {data.get('Message')}")
        return data

    # ========================================================================
    # ORDER CREATION
    # ========================================================================

    def create_payment(self, user_id: int, description: str = "Premium subscription, 30 days") -> Payment:
        """
        Create (or reuse) a payment order for one subscription period

        The larger of the user's referral discount and applied promo code
        discount is taken off the price.

        Args:
            user_id: Paying user ID
            description: Order description shown on the payment form

        Returns:
            Payment with a payment_url to send to the user

        Raises:
            UserNotFoundError: If the user does not exist
            PaymentGatewayError: If the gateway is not configured or rejects the order
            DatabaseError: If database operation fails
        """
        if not self.is_configured():
            raise PaymentGatewayError("Payment gateway is not configured")

        user = self.repo.get_user_by_id(user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")

        discount, promo = self.promocodes.best_discount(user)
        promocode_id = promo.id if promo is not None else None
        pending = self.repo.get_pending_payment(user_id)
        if (pending is not None and pending.payment_url
                and pending.discount_percent == discount and pending.promocode_id == promocode_id):
            logger.info(f"[PAYMENT] Reusing pending payment {pending.order_id} for user {user_id}")
            return pending

        amount = self.price * (100 - discount) // 100
        order_id = str(uuid.uuid4())

        body: Dict[str, Any] = {
            "TerminalKey": self.terminal_key,
            "Amount": amount,
            "OrderId": order_id,
            "Description": description,
        }
        body["Token"] = generate_token(body, self.password)
        body["DATA"] = {"UserId": str(user_id)}

        logger.info(f"[PAYMENT] Creating order {order_id} for user {user_id}: {amount} (discount {discount}%)")
        data = self._post("Init", body)

        payment = Payment(
            user_id=user_id,
            gateway_id=str(data.get("PaymentId", "")),
            order_id=order_id,
            amount=amount,
            original_amount=self.price,
            discount_percent=discount,
            status=normalize_gateway_status(data.get("Status", "NEW")),
            payment_url=data.get("PaymentURL", ""),
            description=description,
            promocode_id=promocode_id
        )
        return self.repo.create_payment(payment)

    # ========================================================================
    # NOTIFICATIONS
    # ========================================================================

    def process_notification(self, payload: Dict[str, Any]) -> Optional[PaymentConfirmed]:
        """
        Apply a gateway status notification

        Args:
            payload: Raw notification JSON

        Returns:
            PaymentConfirmed if this notification confirmed the payment,
            otherwise None

        Raises:
            PaymentVerificationError: If the token does not verify
            PaymentNotFoundError: If the order is unknown
            DatabaseError: If database operation fails
        """
        if not verify_token(payload, self.password):
            logger.warning(f"[PAYMENT] Rejected notification with invalid token for order {payload.get('OrderId')}")
            raise PaymentVerificationError("Invalid notification token")

        order_id = str(payload.get("OrderId", ""))
        payment = self.repo.get_payment_by_order_id(order_id)
        if payment is None:
            raise PaymentNotFoundError(f"Payment {order_id} not found")

        status = normalize_gateway_status(str(payload.get("Status", "")))
        gateway_id = str(payload.get("PaymentId", payment.gateway_id))
        logger.info(f"[PAYMENT] Notification for order {order_id}: {payload.get('Status')} -> {status.value}")

        if status == PaymentStatus.CONFIRMED:
            return self._confirm(payment, gateway_id)

        if not self.repo.update_payment_status(order_id, status, gateway_id):
            logger.info(f"[PAYMENT] Order {order_id} already {payment.status.value}, ignoring {status.value}")
        return None

    def _confirm(self, payment: Payment, gateway_id: str) -> Optional[PaymentConfirmed]:
        """Claim the payment as paid and credit days if this caller won the claim"""
        self.repo.update_payment_status(payment.order_id, PaymentStatus.CONFIRMED, gateway_id)
        if not self.repo.claim_payment_paid(payment.order_id, self.clock()):
            logger.info(f"[PAYMENT] Order {payment.order_id} already credited, ignoring repeat confirmation")
            return None

        self.subscriptions.add_days(payment.user_id, SUBSCRIPTION_DAYS)
        if payment.promocode_id is not None:
            try:
                self.promocodes.redeem(payment.user_id, payment.promocode_id)
            except DatabaseError as e:
                logger.error(f"[PAYMENT] Order {payment.order_id} credited but promo usage not recorded: {e}",
                             exc_info=True)
        logger.info(f"[PAYMENT] Order {payment.order_id} confirmed, user {payment.user_id} +{SUBSCRIPTION_DAYS} days")
        return PaymentConfirmed(user_id=payment.user_id, order_id=payment.order_id, days=SUBSCRIPTION_DAYS)

    # ========================================================================
    # MANUAL STATUS CHECK
    # ========================================================================

    def get_payment_status(self, order_id: str) -> Dict[str, Any]:
        """
        Query the gateway for the current state of an order

        Raises:
            PaymentNotFoundError: If the order is unknown or has no gateway id yet
            PaymentGatewayError: If the gateway call fails
        """
        payment = self.repo.get_payment_by_order_id(order_id)
        if payment is None or not payment.gateway_id:
            raise PaymentNotFoundError(f"Payment {order_id} not found at the gateway")

        body: Dict[str, Any] = {"TerminalKey": self.terminal_key, "PaymentId": payment.gateway_id}
        body["Token"] = generate_token(body, self.password)
        return self._post("GetState", body)

    def refresh_payment(self, order_id: str) -> Optional[PaymentConfirmed]:
        """Re-check an order at the gateway and credit it if it was confirmed"""
        state = self.get_payment_status(order_id)
        if normalize_gateway_status(state.get("Status", "")) != PaymentStatus.CONFIRMED:
            return None

        payment = self.repo.get_payment_by_order_id(order_id)
        return self._confirm(payment, payment.gateway_id)
