"""
Custom Exceptions - Application-specific error types
"""


class HabitTrackerException(Exception):
    """Base exception for all habit tracker errors"""
    pass


class NotFoundError(HabitTrackerException):
    """Raised when an entity lookup misses"""
    pass


class UserNotFoundError(NotFoundError):
    """Raised when a user cannot be found"""
    pass


class HabitNotFoundError(NotFoundError):
    """Raised when a habit cannot be found"""
    pass


class PaymentNotFoundError(NotFoundError):
    """Raised when a payment cannot be found"""
    pass


class BroadcastNotFoundError(NotFoundError):
    """Raised when a broadcast cannot be found"""
    pass


class PromocodeNotFoundError(NotFoundError):
    """Raised when a promo code does not exist"""
    pass


class HabitLimitReachedError(HabitTrackerException):
    """Raised when the user's tier does not allow another active habit"""
    pass


class AccessDeniedError(HabitTrackerException):
    """Raised when a user acts on a habit they do not own"""
    pass


class InvalidHabitDataError(HabitTrackerException):
    """Raised when habit data validation fails"""
    pass


class ReferralError(HabitTrackerException):
    """Base class for rejected referral attempts"""
    pass


class InvalidReferralCodeError(ReferralError):
    """Raised when no user owns the presented referral code"""
    pass


class SelfReferralError(ReferralError):
    """Raised when a user presents their own referral code"""
    pass


class AlreadyReferredError(ReferralError):
    """Raised when the new user already has a referral row"""
    pass


class ReferralNotUnlockedError(ReferralError):
    """Raised when the referrer has not reached the unlock streak"""
    pass


class PaymentVerificationError(HabitTrackerException):
    """Raised when a payment notification fails signature verification"""
    pass


class PaymentGatewayError(HabitTrackerException):
    """Raised when the payment gateway rejects or fails a request"""
    pass


class PromocodeError(HabitTrackerException):
    """Base class for promo codes a user cannot apply"""
    pass


class InvalidPromocodeError(PromocodeError):
    """Raised when the code does not exist or is switched off"""
    pass


class PromocodeExhaustedError(PromocodeError):
    """Raised when the code has reached its usage limit"""
    pass


class PromocodeAlreadyUsedError(PromocodeError):
    """Raised when the user already paid with this code"""
    pass


class PromocodeExistsError(HabitTrackerException):
    """Raised when an admin creates a code that already exists"""
    pass


class BroadcastAlreadyRunningError(HabitTrackerException):
    """Raised when a broadcast is started while another one is running"""
    pass


class DatabaseError(HabitTrackerException):
    """Raised when database operations fail"""
    pass


class ExternalServiceError(HabitTrackerException):
    """Raised when external services (Twilio, Tinkoff, etc.) fail"""
    pass
