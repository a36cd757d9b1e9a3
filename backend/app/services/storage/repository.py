"""
Storage Repository - Centralized database access layer
All Supabase queries for users, habits, logs, achievements, referrals,
payments, ads and broadcasts.

Idempotency relies on the unique constraints declared in schema.sql:
insert-or-no-op calls report whether this caller created the row, and
claim-style updates report whether this caller performed the transition.
"""
from datetime import date, datetime
from typing import List, Dict, Any, Optional, Tuple
import logging

from supabase import Client

from app.core.constants import MAX_GRANT_ATTEMPTS
from app.core.exceptions import DatabaseError
from app.models import (
    Achievement,
    AchievementTier,
    Ad,
    Broadcast,
    BroadcastStatus,
    Habit,
    HabitLog,
    OPEN_PAYMENT_STATUSES,
    Payment,
    PaymentStatus,
    Promocode,
    Referral,
    User,
)

logger = logging.getLogger(__name__)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class SupabaseRepository:
    """Repository backed by a Supabase (PostgREST) client"""

    def __init__(self, client: Client):
        self.client = client

    def _table(self, name: str):
        return self.client.table(name)

    # ========================================================================
    # USERS TABLE
    # ========================================================================

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        """
        Get a single user by ID

        Args:
            user_id: The user ID

        Returns:
            User or None if not found

        Raises:
            DatabaseError: If query fails
        """
        try:
            result = self._table("users").select("*").eq("id", user_id).limit(1).execute()
            return User.model_validate(result.data[0]) if result.data else None
        except Exception as e:
            logger.error(f"Database error fetching user {user_id}: {e}")
            raise DatabaseError(f"Failed to fetch user: {e}")

    def get_user_by_external_id(self, external_id: str) -> Optional[User]:
        """
        Get a user by chat address

        Raises:
            DatabaseError: If query fails
        """
        try:
            result = self._table("users").select("*").eq("external_id", external_id).limit(1).execute()
            return User.model_validate(result.data[0]) if result.data else None
        except Exception as e:
            logger.error(f"Database error fetching user by external id: {e}")
            raise DatabaseError(f"Failed to fetch user: {e}")

    def get_user_by_referral_code(self, code: str) -> Optional[User]:
        """
        Get the owner of a referral code

        Raises:
            DatabaseError: If query fails
        """
        try:
            result = self._table("users").select("*").eq("referral_code", code).limit(1).execute()
            return User.model_validate(result.data[0]) if result.data else None
        except Exception as e:
            logger.error(f"Database error fetching user by referral code: {e}")
            raise DatabaseError(f"Failed to fetch user: {e}")

    def upsert_user(self, external_id: str, username: Optional[str], first_name: Optional[str],
                    timezone: str, referral_code: str) -> Tuple[User, bool]:
        """
        Create a user or refresh the profile fields of an existing one

        The referral code is only written on creation; it is immutable
        afterward.

        Args:
            external_id: Chat address
            username: Chat username
            first_name: Display name
            timezone: Timezone name stored for the user
            referral_code: Code to assign if the user is created

        Returns:
            Tuple of (user, created)

        Raises:
            DatabaseError: If insert or update fails
        """
        try:
            result = self._table("users").upsert({
                "external_id": external_id,
                "username": username,
                "first_name": first_name,
                "timezone": timezone,
                "referral_code": referral_code,
                "discount_percent": 0,
                "action_count": 0,
                "subscribed_to_broadcasts": True,
            }, on_conflict="external_id", ignore_duplicates=True).execute()
            if result.data:
                return User.model_validate(result.data[0]), True

            result = self._table("users")\
                .update({"username": username, "first_name": first_name})\
                .eq("external_id", external_id)\
                .execute()
            return User.model_validate(result.data[0]), False
        except Exception as e:
            logger.error(f"Database error upserting user {external_id}: {e}")
            raise DatabaseError(f"Failed to save user: {e}")

    def set_referred_by(self, user_id: int, referrer_id: int) -> None:
        """Record the referring user, only if none was recorded yet"""
        try:
            self._table("users")\
                .update({"referred_by": referrer_id})\
                .eq("id", user_id)\
                .is_("referred_by", "null")\
                .execute()
        except Exception as e:
            logger.error(f"Database error setting referrer for user {user_id}: {e}")
            raise DatabaseError(f"Failed to update user: {e}")

    def set_subscription_end(self, user_id: int, end: datetime) -> None:
        """
        Overwrite a user's subscription end

        Raises:
            DatabaseError: If update fails
        """
        try:
            self._table("users").update({"subscription_end": _iso(end)}).eq("id", user_id).execute()
        except Exception as e:
            logger.error(f"Database error setting subscription for user {user_id}: {e}")
            raise DatabaseError(f"Failed to update subscription: {e}")

    def compare_and_set_subscription_end(self, user_id: int, expected: Optional[datetime],
                                         new_end: datetime) -> bool:
        """
        Set the subscription end only if it still equals the expected value

        Returns:
            True if this call performed the update

        Raises:
            DatabaseError: If update fails
        """
        try:
            query = self._table("users").update({"subscription_end": _iso(new_end)}).eq("id", user_id)
            if expected is None:
                query = query.is_("subscription_end", "null")
            else:
                query = query.eq("subscription_end", _iso(expected))
            result = query.execute()
            return bool(result.data)
        except Exception as e:
            logger.error(f"Database error extending subscription for user {user_id}: {e}")
            raise DatabaseError(f"Failed to update subscription: {e}")

    def compare_and_set_discount(self, user_id: int, expected: int, new_percent: int) -> bool:
        """
        Set the discount percent only if it still equals the expected value

        Returns:
            True if this call performed the update

        Raises:
            DatabaseError: If update fails
        """
        try:
            result = self._table("users")\
                .update({"discount_percent": new_percent})\
                .eq("id", user_id)\
                .eq("discount_percent", expected)\
                .execute()
            return bool(result.data)
        except Exception as e:
            logger.error(f"Database error updating discount for user {user_id}: {e}")
            raise DatabaseError(f"Failed to update discount: {e}")

    def increment_action_count(self, user_id: int) -> int:
        """
        Increment the per-user action counter used for ad cadence

        Returns:
            The new counter value

        Raises:
            DatabaseError: If the counter cannot be updated
        """
        try:
            for _ in range(MAX_GRANT_ATTEMPTS):
                current = self._table("users").select("action_count").eq("id", user_id).limit(1).execute()
                if not current.data:
                    raise DatabaseError(f"User {user_id} not found")
                count = current.data[0]["action_count"]
                result = self._table("users")\
                    .update({"action_count": count + 1})\
                    .eq("id", user_id)\
                    .eq("action_count", count)\
                    .execute()
                if result.data:
                    return count + 1
            raise DatabaseError("Action counter kept changing under concurrent updates")
        except DatabaseError:
            raise
        except Exception as e:
            logger.error(f"Database error incrementing action count for user {user_id}: {e}")
            raise DatabaseError(f"Failed to increment action count: {e}")

    def reset_action_count(self, user_id: int) -> None:
        try:
            self._table("users").update({"action_count": 0}).eq("id", user_id).execute()
        except Exception as e:
            logger.error(f"Database error resetting action count for user {user_id}: {e}")
            raise DatabaseError(f"Failed to reset action count: {e}")

    def count_broadcast_recipients(self) -> int:
        try:
            result = self._table("users")\
                .select("id", count="exact")\
                .eq("subscribed_to_broadcasts", True)\
                .execute()
            return result.count or 0
        except Exception as e:
            logger.error(f"Database error counting broadcast recipients: {e}")
            raise DatabaseError(f"Failed to count users: {e}")

    def list_broadcast_recipients(self, after_user_id: int, limit: int) -> List[User]:
        """
        Get the next batch of opted-in users ordered by id

        Args:
            after_user_id: Exclusive lower bound on user id
            limit: Batch size

        Raises:
            DatabaseError: If query fails
        """
        try:
            result = self._table("users")\
                .select("*")\
                .eq("subscribed_to_broadcasts", True)\
                .gt("id", after_user_id)\
                .order("id")\
                .limit(limit)\
                .execute()
            return [User.model_validate(row) for row in result.data]
        except Exception as e:
            logger.error(f"Database error fetching broadcast recipients: {e}")
            raise DatabaseError(f"Failed to fetch users: {e}")

    # ========================================================================
    # HABITS TABLE
    # ========================================================================

    def create_habit(self, user_id: int, name: str, description: str, frequency: str,
                     reminder_time: Optional[str] = None) -> Habit:
        """
        Create a new active habit

        Raises:
            DatabaseError: If insert fails
        """
        try:
            habit_data = {
                "user_id": user_id,
                "name": name,
                "description": description,
                "frequency": frequency,
                "is_active": True
            }
            if reminder_time:
                habit_data["reminder_time"] = reminder_time

            result = self._table("habits").insert(habit_data).execute()
            return Habit.model_validate(result.data[0])
        except Exception as e:
            logger.error(f"Database error creating habit: {e}")
            raise DatabaseError(f"Failed to create habit: {e}")

    def get_habit_by_id(self, habit_id: int) -> Optional[Habit]:
        """
        Get a single habit by ID

        Returns:
            Habit or None if not found

        Raises:
            DatabaseError: If query fails
        """
        try:
            result = self._table("habits").select("*").eq("id", habit_id).limit(1).execute()
            return Habit.model_validate(result.data[0]) if result.data else None
        except Exception as e:
            logger.error(f"Database error fetching habit {habit_id}: {e}")
            raise DatabaseError(f"Failed to fetch habit: {e}")

    def list_active_habits(self, user_id: int) -> List[Habit]:
        try:
            result = self._table("habits")\
                .select("*")\
                .eq("user_id", user_id)\
                .eq("is_active", True)\
                .order("created_at")\
                .execute()
            return [Habit.model_validate(row) for row in result.data]
        except Exception as e:
            logger.error(f"Database error fetching habits for user {user_id}: {e}")
            raise DatabaseError(f"Failed to fetch habits: {e}")

    def count_active_habits(self, user_id: int) -> int:
        try:
            result = self._table("habits")\
                .select("id", count="exact")\
                .eq("user_id", user_id)\
                .eq("is_active", True)\
                .execute()
            return result.count or 0
        except Exception as e:
            logger.error(f"Database error counting habits for user {user_id}: {e}")
            raise DatabaseError(f"Failed to count habits: {e}")

    def deactivate_habit(self, habit_id: int) -> None:
        """
        Soft-delete a habit; its logs stay attributable

        Raises:
            DatabaseError: If update fails
        """
        try:
            self._table("habits").update({"is_active": False}).eq("id", habit_id).execute()
        except Exception as e:
            logger.error(f"Database error deactivating habit {habit_id}: {e}")
            raise DatabaseError(f"Failed to delete habit: {e}")

    def update_habit_reminder(self, habit_id: int, reminder_time: Optional[str]) -> None:
        try:
            self._table("habits").update({"reminder_time": reminder_time}).eq("id", habit_id).execute()
        except Exception as e:
            logger.error(f"Database error updating reminder for habit {habit_id}: {e}")
            raise DatabaseError(f"Failed to update habit: {e}")

    def list_habits_with_reminder(self, reminder_time: str) -> List[Habit]:
        """
        Get active habits whose reminder is set to the given HH:MM

        Raises:
            DatabaseError: If query fails
        """
        try:
            result = self._table("habits")\
                .select("*")\
                .eq("is_active", True)\
                .eq("reminder_time", reminder_time)\
                .execute()
            return [Habit.model_validate(row) for row in result.data]
        except Exception as e:
            logger.error(f"Database error fetching habits for reminder {reminder_time}: {e}")
            raise DatabaseError(f"Failed to fetch habits: {e}")

    # ========================================================================
    # HABIT_LOGS TABLE
    # ========================================================================

    def upsert_log(self, habit_id: int, user_id: int, day: date, completed: bool,
                   note: str = "") -> HabitLog:
        """
        Write the completion record for (habit, day), overwriting any existing one

        Args:
            habit_id: The habit ID
            user_id: The owning user ID
            day: Calendar day in the reference timezone
            completed: Completion flag
            note: Optional note

        Returns:
            The stored log

        Raises:
            DatabaseError: If upsert fails
        """
        try:
            result = self._table("habit_logs").upsert({
                "habit_id": habit_id,
                "user_id": user_id,
                "date": str(day),
                "completed": completed,
                "note": note
            }, on_conflict="habit_id,date").execute()
            return HabitLog.model_validate(result.data[0])
        except Exception as e:
            logger.error(f"Database error writing log for habit {habit_id} on {day}: {e}")
            raise DatabaseError(f"Failed to write habit log: {e}")

    def list_logs_for_user_on_day(self, user_id: int, day: date) -> List[HabitLog]:
        try:
            result = self._table("habit_logs")\
                .select("*")\
                .eq("user_id", user_id)\
                .eq("date", str(day))\
                .execute()
            return [HabitLog.model_validate(row) for row in result.data]
        except Exception as e:
            logger.error(f"Database error fetching logs for user {user_id} on {day}: {e}")
            raise DatabaseError(f"Failed to fetch habit logs: {e}")

    def list_logs_for_user_in_range(self, user_id: int, start: date, end: date) -> List[HabitLog]:
        """
        Get a user's logs with start <= date <= end, newest first

        Raises:
            DatabaseError: If query fails
        """
        try:
            result = self._table("habit_logs")\
                .select("*")\
                .eq("user_id", user_id)\
                .gte("date", str(start))\
                .lte("date", str(end))\
                .order("date", desc=True)\
                .execute()
            return [HabitLog.model_validate(row) for row in result.data]
        except Exception as e:
            logger.error(f"Database error fetching logs for user {user_id}: {e}")
            raise DatabaseError(f"Failed to fetch habit logs: {e}")

    def list_logs_for_habit(self, habit_id: int) -> List[HabitLog]:
        try:
            result = self._table("habit_logs")\
                .select("*")\
                .eq("habit_id", habit_id)\
                .order("date")\
                .execute()
            return [HabitLog.model_validate(row) for row in result.data]
        except Exception as e:
            logger.error(f"Database error fetching logs for habit {habit_id}: {e}")
            raise DatabaseError(f"Failed to fetch habit logs: {e}")

    # ========================================================================
    # ACHIEVEMENTS TABLE
    # ========================================================================

    def create_achievement_if_absent(self, user_id: int, tier: AchievementTier) -> bool:
        """
        Record an unlocked tier unless the user already has it

        Returns:
            True if this call created the row

        Raises:
            DatabaseError: If insert fails
        """
        try:
            result = self._table("achievements").upsert({
                "user_id": user_id,
                "type": tier.type.value,
                "streak_days": tier.streak_days,
                "bonus_days": tier.bonus_days
            }, on_conflict="user_id,type", ignore_duplicates=True).execute()
            return bool(result.data)
        except Exception as e:
            logger.error(f"Database error creating achievement for user {user_id}: {e}")
            raise DatabaseError(f"Failed to create achievement: {e}")

    def list_achievements(self, user_id: int) -> List[Achievement]:
        try:
            result = self._table("achievements")\
                .select("*")\
                .eq("user_id", user_id)\
                .order("unlocked_at", desc=True)\
                .execute()
            return [Achievement.model_validate(row) for row in result.data]
        except Exception as e:
            logger.error(f"Database error fetching achievements for user {user_id}: {e}")
            raise DatabaseError(f"Failed to fetch achievements: {e}")

    def has_achievement(self, user_id: int, achievement_type: str) -> bool:
        try:
            result = self._table("achievements")\
                .select("id")\
                .eq("user_id", user_id)\
                .eq("type", achievement_type)\
                .limit(1)\
                .execute()
            return bool(result.data)
        except Exception as e:
            logger.error(f"Database error checking achievement for user {user_id}: {e}")
            raise DatabaseError(f"Failed to check achievement: {e}")

    # ========================================================================
    # REFERRALS TABLE
    # ========================================================================

    def create_referral_if_absent(self, referrer_id: int, referred_id: int, referral_code: str,
                                  gave_discount: bool) -> Optional[Referral]:
        """
        Insert the referral row for a referred user in the stage-1 pending state

        Returns:
            The created referral, or None if the referred user already had one

        Raises:
            DatabaseError: If insert fails
        """
        try:
            result = self._table("referrals").upsert({
                "referrer_id": referrer_id,
                "referred_id": referred_id,
                "referral_code": referral_code,
                "stage1_applied": False,
                "stage1_bonus_days": 0,
                "stage2_applied": False,
                "stage2_bonus_days": 0,
                "gave_discount": gave_discount
            }, on_conflict="referred_id", ignore_duplicates=True).execute()
            return Referral.model_validate(result.data[0]) if result.data else None
        except Exception as e:
            logger.error(f"Database error creating referral for user {referred_id}: {e}")
            raise DatabaseError(f"Failed to create referral: {e}")

    def get_referral_by_referred(self, referred_id: int) -> Optional[Referral]:
        try:
            result = self._table("referrals").select("*").eq("referred_id", referred_id).limit(1).execute()
            return Referral.model_validate(result.data[0]) if result.data else None
        except Exception as e:
            logger.error(f"Database error fetching referral for user {referred_id}: {e}")
            raise DatabaseError(f"Failed to fetch referral: {e}")

    def list_referrals_by_referrer(self, referrer_id: int) -> List[Referral]:
        try:
            result = self._table("referrals")\
                .select("*")\
                .eq("referrer_id", referrer_id)\
                .order("created_at", desc=True)\
                .execute()
            return [Referral.model_validate(row) for row in result.data]
        except Exception as e:
            logger.error(f"Database error fetching referrals of user {referrer_id}: {e}")
            raise DatabaseError(f"Failed to fetch referrals: {e}")

    def get_pending_stage2_referral(self, referred_id: int) -> Optional[Referral]:
        """
        Get the referral still waiting for its stage-2 reward

        Discount-mode referrals never qualify.

        Raises:
            DatabaseError: If query fails
        """
        try:
            result = self._table("referrals")\
                .select("*")\
                .eq("referred_id", referred_id)\
                .eq("stage1_applied", True)\
                .eq("stage2_applied", False)\
                .eq("gave_discount", False)\
                .limit(1)\
                .execute()
            return Referral.model_validate(result.data[0]) if result.data else None
        except Exception as e:
            logger.error(f"Database error fetching pending referral for user {referred_id}: {e}")
            raise DatabaseError(f"Failed to fetch referral: {e}")

    def update_referral_stage1(self, referral_id: int, bonus_days: int) -> None:
        try:
            self._table("referrals")\
                .update({"stage1_applied": True, "stage1_bonus_days": bonus_days})\
                .eq("id", referral_id)\
                .execute()
        except Exception as e:
            logger.error(f"Database error updating stage 1 of referral {referral_id}: {e}")
            raise DatabaseError(f"Failed to update referral: {e}")

    def claim_referral_stage2(self, referral_id: int, bonus_days: int) -> bool:
        """
        Mark stage 2 applied if no concurrent event did so first

        Returns:
            True if this call performed the transition

        Raises:
            DatabaseError: If update fails
        """
        try:
            result = self._table("referrals")\
                .update({"stage2_applied": True, "stage2_bonus_days": bonus_days})\
                .eq("id", referral_id)\
                .eq("stage2_applied", False)\
                .eq("gave_discount", False)\
                .execute()
            return bool(result.data)
        except Exception as e:
            logger.error(f"Database error updating stage 2 of referral {referral_id}: {e}")
            raise DatabaseError(f"Failed to update referral: {e}")

    def mark_referral_discount(self, referral_id: int) -> None:
        try:
            self._table("referrals").update({"gave_discount": True}).eq("id", referral_id).execute()
        except Exception as e:
            logger.error(f"Database error marking discount on referral {referral_id}: {e}")
            raise DatabaseError(f"Failed to update referral: {e}")

    def count_bonus_referrals(self, referrer_id: int) -> int:
        """Count a referrer's referrals that were rewarded with days, not discount"""
        try:
            result = self._table("referrals")\
                .select("id", count="exact")\
                .eq("referrer_id", referrer_id)\
                .eq("gave_discount", False)\
                .execute()
            return result.count or 0
        except Exception as e:
            logger.error(f"Database error counting referrals of user {referrer_id}: {e}")
            raise DatabaseError(f"Failed to count referrals: {e}")

    # ========================================================================
    # PAYMENTS TABLE
    # ========================================================================

    def create_payment(self, payment: Payment) -> Payment:
        try:
            data = payment.model_dump(mode="json", exclude={"id", "created_at", "paid_at"})
            result = self._table("payments").insert(data).execute()
            return Payment.model_validate(result.data[0])
        except Exception as e:
            logger.error(f"Database error creating payment {payment.order_id}: {e}")
            raise DatabaseError(f"Failed to create payment: {e}")

    def get_payment_by_order_id(self, order_id: str) -> Optional[Payment]:
        try:
            result = self._table("payments").select("*").eq("order_id", order_id).limit(1).execute()
            return Payment.model_validate(result.data[0]) if result.data else None
        except Exception as e:
            logger.error(f"Database error fetching payment {order_id}: {e}")
            raise DatabaseError(f"Failed to fetch payment: {e}")

    def update_payment_status(self, order_id: str, status: PaymentStatus, gateway_id: str) -> bool:
        """
        Move a payment to a new status, only while it is still NEW or PENDING

        Returns:
            True if the row was updated, False if it had already reached a final status

        Raises:
            DatabaseError: If update fails
        """
        try:
            result = self._table("payments")\
                .update({"status": status.value, "gateway_id": gateway_id})\
                .eq("order_id", order_id)\
                .in_("status", [s.value for s in OPEN_PAYMENT_STATUSES])\
                .execute()
            return bool(result.data)
        except Exception as e:
            logger.error(f"Database error updating payment {order_id}: {e}")
            raise DatabaseError(f"Failed to update payment: {e}")

    def claim_payment_paid(self, order_id: str, paid_at: datetime) -> bool:
        """
        Confirm a payment and stamp paid_at, only if it was not stamped before

        Returns:
            True if this call confirmed the payment

        Raises:
            DatabaseError: If update fails
        """
        try:
            result = self._table("payments")\
                .update({"status": PaymentStatus.CONFIRMED.value, "paid_at": _iso(paid_at)})\
                .eq("order_id", order_id)\
                .is_("paid_at", "null")\
                .execute()
            return bool(result.data)
        except Exception as e:
            logger.error(f"Database error confirming payment {order_id}: {e}")
            raise DatabaseError(f"Failed to confirm payment: {e}")

    def get_pending_payment(self, user_id: int) -> Optional[Payment]:
        try:
            result = self._table("payments")\
                .select("*")\
                .eq("user_id", user_id)\
                .in_("status", [s.value for s in OPEN_PAYMENT_STATUSES])\
                .order("created_at", desc=True)\
                .limit(1)\
                .execute()
            return Payment.model_validate(result.data[0]) if result.data else None
        except Exception as e:
            logger.error(f"Database error fetching pending payment for user {user_id}: {e}")
            raise DatabaseError(f"Failed to fetch payment: {e}")

    # ========================================================================
    # PROMOCODES TABLE
    # ========================================================================

    def create_promocode_if_absent(self, code: str, discount_percent: int,
                                   max_uses: Optional[int]) -> Optional[Promocode]:
        """
        Insert a promo code unless the code is already taken

        Returns:
            The new Promocode, or None if the code already existed

        Raises:
            DatabaseError: If insert fails
        """
        try:
            result = self._table("promocodes")\
                .upsert(
                    {"code": code, "discount_percent": discount_percent, "max_uses": max_uses},
                    on_conflict="code",
                    ignore_duplicates=True
                )\
                .execute()
            return Promocode.model_validate(result.data[0]) if result.data else None
        except Exception as e:
            logger.error(f"Database error creating promocode {code}: {e}")
            raise DatabaseError(f"Failed to create promocode: {e}")

    def list_promocodes(self) -> List[Promocode]:
        try:
            result = self._table("promocodes").select("*").order("created_at", desc=True).execute()
            return [Promocode.model_validate(row) for row in result.data]
        except Exception as e:
            logger.error(f"Database error fetching promocodes: {e}")
            raise DatabaseError(f"Failed to fetch promocodes: {e}")

    def get_promocode_by_code(self, code: str) -> Optional[Promocode]:
        try:
            result = self._table("promocodes").select("*").eq("code", code).limit(1).execute()
            return Promocode.model_validate(result.data[0]) if result.data else None
        except Exception as e:
            logger.error(f"Database error fetching promocode {code}: {e}")
            raise DatabaseError(f"Failed to fetch promocode: {e}")

    def get_promocode_by_id(self, promocode_id: int) -> Optional[Promocode]:
        try:
            result = self._table("promocodes").select("*").eq("id", promocode_id).limit(1).execute()
            return Promocode.model_validate(result.data[0]) if result.data else None
        except Exception as e:
            logger.error(f"Database error fetching promocode {promocode_id}: {e}")
            raise DatabaseError(f"Failed to fetch promocode: {e}")

    def set_promocode_active(self, code: str, is_active: bool) -> Optional[Promocode]:
        try:
            result = self._table("promocodes").update({"is_active": is_active}).eq("code", code).execute()
            return Promocode.model_validate(result.data[0]) if result.data else None
        except Exception as e:
            logger.error(f"Database error updating promocode {code}: {e}")
            raise DatabaseError(f"Failed to update promocode: {e}")

    def delete_promocode(self, code: str) -> bool:
        try:
            result = self._table("promocodes").delete().eq("code", code).execute()
            return bool(result.data)
        except Exception as e:
            logger.error(f"Database error deleting promocode {code}: {e}")
            raise DatabaseError(f"Failed to delete promocode: {e}")

    def set_active_promocode(self, user_id: int, promocode_id: Optional[int]) -> None:
        """Attach a promo code to the user's next payment, or detach it with None"""
        try:
            self._table("users").update({"active_promocode_id": promocode_id}).eq("id", user_id).execute()
        except Exception as e:
            logger.error(f"Database error setting promocode for user {user_id}: {e}")
            raise DatabaseError(f"Failed to update user: {e}")

    def clear_active_promocode(self, user_id: int, promocode_id: int) -> None:
        """Detach the promo code, only if it is still the one attached"""
        try:
            self._table("users")\
                .update({"active_promocode_id": None})\
                .eq("id", user_id)\
                .eq("active_promocode_id", promocode_id)\
                .execute()
        except Exception as e:
            logger.error(f"Database error clearing promocode for user {user_id}: {e}")
            raise DatabaseError(f"Failed to update user: {e}")

    def has_used_promocode(self, user_id: int, promocode_id: int) -> bool:
        try:
            result = self._table("promocode_usages")\
                .select("id")\
                .eq("user_id", user_id)\
                .eq("promocode_id", promocode_id)\
                .limit(1)\
                .execute()
            return bool(result.data)
        except Exception as e:
            logger.error(f"Database error checking promocode usage for user {user_id}: {e}")
            raise DatabaseError(f"Failed to fetch promocode usage: {e}")

    def record_promocode_usage(self, promocode_id: int, user_id: int) -> bool:
        """
        Record that a user paid with a promo code and bump its used_count

        The usage row is insert-or-no-op on (promocode_id, user_id), so the
        count is bumped at most once per user.

        Returns:
            True if this call recorded the usage

        Raises:
            DatabaseError: If the usage cannot be recorded
        """
        try:
            inserted = self._table("promocode_usages")\
                .upsert(
                    {"promocode_id": promocode_id, "user_id": user_id},
                    on_conflict="promocode_id,user_id",
                    ignore_duplicates=True
                )\
                .execute()
            if not inserted.data:
                return False

            for _ in range(MAX_GRANT_ATTEMPTS):
                current = self._table("promocodes").select("used_count").eq("id", promocode_id).limit(1).execute()
                if not current.data:
                    return True
                count = current.data[0]["used_count"]
                result = self._table("promocodes")\
                    .update({"used_count": count + 1})\
                    .eq("id", promocode_id)\
                    .eq("used_count", count)\
                    .execute()
                if result.data:
                    return True
            raise DatabaseError("Promocode counter kept changing under concurrent updates")
        except DatabaseError:
            raise
        except Exception as e:
            logger.error(f"Database error recording promocode {promocode_id} for user {user_id}: {e}")
            raise DatabaseError(f"Failed to record promocode usage: {e}")

    # ========================================================================
    # ADS TABLE
    # ========================================================================

    def create_ad(self, ad_data: Dict[str, Any]) -> Ad:
        try:
            result = self._table("ads").insert(ad_data).execute()
            return Ad.model_validate(result.data[0])
        except Exception as e:
            logger.error(f"Database error creating ad: {e}")
            raise DatabaseError(f"Failed to create ad: {e}")

    def list_ads(self) -> List[Ad]:
        try:
            result = self._table("ads").select("*").order("id", desc=True).execute()
            return [Ad.model_validate(row) for row in result.data]
        except Exception as e:
            logger.error(f"Database error fetching ads: {e}")
            raise DatabaseError(f"Failed to fetch ads: {e}")

    def list_active_ads(self, now: datetime) -> List[Ad]:
        """
        Get active ads whose optional date window contains now

        Raises:
            DatabaseError: If query fails
        """
        try:
            result = self._table("ads").select("*").eq("is_active", True).execute()
            ads = [Ad.model_validate(row) for row in result.data]
        except Exception as e:
            logger.error(f"Database error fetching active ads: {e}")
            raise DatabaseError(f"Failed to fetch ads: {e}")

        return [
            ad for ad in ads
            if (ad.start_date is None or ad.start_date <= now)
            and (ad.end_date is None or ad.end_date >= now)
        ]

    def increment_ad_counter(self, ad_id: int, column: str) -> None:
        """Best-effort view/click counter bump"""
        try:
            current = self._table("ads").select(column).eq("id", ad_id).limit(1).execute()
            if current.data:
                self._table("ads").update({column: current.data[0][column] + 1}).eq("id", ad_id).execute()
        except Exception as e:
            logger.error(f"Database error updating {column} for ad {ad_id}: {e}")
            raise DatabaseError(f"Failed to update ad: {e}")

    # ========================================================================
    # BROADCASTS TABLE
    # ========================================================================

    def create_broadcast(self, name: str, text: str) -> Broadcast:
        try:
            result = self._table("broadcasts").insert({
                "name": name,
                "text": text,
                "status": BroadcastStatus.DRAFT.value
            }).execute()
            return Broadcast.model_validate(result.data[0])
        except Exception as e:
            logger.error(f"Database error creating broadcast: {e}")
            raise DatabaseError(f"Failed to create broadcast: {e}")

    def get_broadcast(self, broadcast_id: int) -> Optional[Broadcast]:
        try:
            result = self._table("broadcasts").select("*").eq("id", broadcast_id).limit(1).execute()
            return Broadcast.model_validate(result.data[0]) if result.data else None
        except Exception as e:
            logger.error(f"Database error fetching broadcast {broadcast_id}: {e}")
            raise DatabaseError(f"Failed to fetch broadcast: {e}")

    def list_broadcasts(self) -> List[Broadcast]:
        try:
            result = self._table("broadcasts").select("*").order("id", desc=True).execute()
            return [Broadcast.model_validate(row) for row in result.data]
        except Exception as e:
            logger.error(f"Database error fetching broadcasts: {e}")
            raise DatabaseError(f"Failed to fetch broadcasts: {e}")

    def get_running_broadcast(self) -> Optional[Broadcast]:
        try:
            result = self._table("broadcasts")\
                .select("*")\
                .eq("status", BroadcastStatus.RUNNING.value)\
                .order("id")\
                .limit(1)\
                .execute()
            return Broadcast.model_validate(result.data[0]) if result.data else None
        except Exception as e:
            logger.error(f"Database error fetching running broadcast: {e}")
            raise DatabaseError(f"Failed to fetch broadcast: {e}")

    def update_broadcast(self, broadcast_id: int, update_data: Dict[str, Any]) -> None:
        """
        Update a broadcast

        Args:
            broadcast_id: The broadcast ID
            update_data: Dictionary of fields to update

        Raises:
            DatabaseError: If update fails
        """
        try:
            data = {k: (_iso(v) if isinstance(v, datetime) else v) for k, v in update_data.items()}
            self._table("broadcasts").update(data).eq("id", broadcast_id).execute()
        except Exception as e:
            logger.error(f"Database error updating broadcast {broadcast_id}: {e}")
            raise DatabaseError(f"Failed to update broadcast: {e}")
