"""
Chat command handling for the WhatsApp transport
Parses plain-text commands, runs them against the services and renders
the reply text
"""
from typing import Callable, Dict, List, Optional, Tuple
import logging

from app.core.constants import REFERRAL_UNLOCK_STREAK
from app.core.exceptions import (
    AccessDeniedError,
    AlreadyReferredError,
    DatabaseError,
    HabitLimitReachedError,
    HabitNotFoundError,
    HabitTrackerException,
    InvalidHabitDataError,
    InvalidReferralCodeError,
    PaymentGatewayError,
    PromocodeError,
    ReferralNotUnlockedError,
    SelfReferralError
)
from app.models import Habit, ReferralStageCompleted, User
from app.services.notifications.service import format_ad

logger = logging.getLogger(__name__)

AWAITING_HABIT_NAME = "awaiting_habit_name"

GENERIC_FAILURE = "❌ Sorry, something went wrong on our side. Please try again in a minute."

HELP_TEXT = (
    "Here's what I understand:\n\n"
    "habits - today's checklist\n"
    "new <name> - add a habit\n"
    "done <N> - mark habit N as done today\n"
    "undo <N> - unmark habit N for today\n"
    "delete <N> - delete habit N\n"
    "remind <N> <HH:MM|off> - set a daily reminder (Premium)\n"
    "stats - your statistics\n"
    "achievements - unlocked and next achievements\n"
    "referral - invite friends\n"
    "premium - subscription status and payment link\n"
    "promo <CODE> - apply a promo code to your next payment\n"
    "help - this message"
)

REFERRAL_ERROR_TEXT: Dict[str, str] = {
    InvalidReferralCodeError.__name__: "that invite code doesn't exist",
    SelfReferralError.__name__: "you can't use your own invite code",
    ReferralNotUnlockedError.__name__: "the person who invited you hasn't unlocked invites yet",
    AlreadyReferredError.__name__: "you were already invited by someone",
}


def parse_command(text: str) -> Tuple[str, List[str]]:
    """
    Split a message into a lowercase command word and its arguments

    A leading slash is accepted so "/done 1" works like "done 1".
    """
    parts = text.strip().split()
    if not parts:
        return "", []
    return parts[0].lstrip("/").lower(), parts[1:]


def parse_referral_code(args: List[str]) -> Optional[str]:
    """Extract CODE from a 'ref_CODE' start argument"""
    for arg in args:
        if arg.lower().startswith("ref_") and len(arg) > 4:
            return arg[4:]
    return None


class CommandRouter:
    """
    Routes chat messages to command handlers

    Progression events are delivered through the notification service as
    separate messages; the returned string is the direct reply.
    """

    def __init__(self, container):
        self.c = container
        self.handlers: Dict[str, Callable[[User, List[str]], str]] = {
            "habits": self.cmd_habits,
            "list": self.cmd_habits,
            "new": self.cmd_new,
            "done": self.cmd_done,
            "undo": self.cmd_undo,
            "delete": self.cmd_delete,
            "remind": self.cmd_remind,
            "stats": self.cmd_stats,
            "achievements": self.cmd_achievements,
            "referral": self.cmd_referral,
            "premium": self.cmd_premium,
            "promo": self.cmd_promo,
            "help": self.cmd_help,
            "cancel": self.cmd_cancel,
        }

    def handle(self, external_id: str, text: str, profile_name: Optional[str] = None) -> str:
        """
        Handle one inbound chat message

        Args:
            external_id: Sender chat address
            text: Message body
            profile_name: Sender display name reported by the transport

        Returns:
            Reply text

        Raises:
            DatabaseError: If storage fails while registering the sender
        """
        command, args = parse_command(text)

        if command == "start":
            return self.cmd_start(external_id, profile_name, args)

        user = self.c.users.get_by_external_id(external_id)
        if user is None:
            user = self.c.users.register_user(external_id, first_name=profile_name).user

        try:
            reply = self._dispatch(user, command, args, text)
        except DatabaseError as e:
            logger.error(f"[CHAT] Storage failure handling '{command}' for user {user.id}: {e}")
            return GENERIC_FAILURE
        except HabitTrackerException as e:
            logger.info(f"[CHAT] Command '{command}' rejected for user {user.id}: {e}")
            reply = f"⚠️ {e}"

        return reply + self._maybe_ad(user)

    def _dispatch(self, user: User, command: str, args: List[str], text: str) -> str:
        session = self.c.sessions.get(user.external_id)
        if session and session.get("state") == AWAITING_HABIT_NAME and command not in self.handlers:
            self.c.sessions.clear(user.external_id)
            return self._create_habit(user, text.strip())

        handler = self.handlers.get(command)
        if handler is None:
            return "I didn't get that. Send 'help' to see what I can do."
        return handler(user, args)

    def _maybe_ad(self, user: User) -> str:
        try:
            if not self.c.ads.should_show_ad(user.id):
                return ""
            ad = self.c.ads.pick_ad()
            if ad is None:
                return ""
            self.c.ads.track_view(ad.id)
            return "\n\n" + format_ad(ad)
        except DatabaseError as e:
            logger.warning(f"[CHAT] Skipping ad for user {user.id}: {e}")
            return ""

    def _habit_by_number(self, user: User, args: List[str]) -> Habit:
        """
        Resolve a 1-based position in the user's habit list

        Raises:
            InvalidHabitDataError: If the argument is missing or not a number
            HabitNotFoundError: If no habit has that position
        """
        if not args or not args[0].isdigit():
            raise InvalidHabitDataError("Please add the habit number, e.g. 'done 1'.")
        position = int(args[0])
        habits = self.c.habits.list_habits(user.id)
        if position < 1 or position > len(habits):
            raise HabitNotFoundError(f"There is no habit number {position}.")
        return habits[position - 1]

    # ========================================================================
    # REGISTRATION
    # ========================================================================

    def cmd_start(self, external_id: str, profile_name: Optional[str], args: List[str]) -> str:
        result = self.c.users.register_user(
            external_id,
            first_name=profile_name,
            referral_code=parse_referral_code(args)
        )
        user = result.user

        if not result.is_new:
            return f"👋 Welcome back, {user.display_name}! Send 'habits' to see today's checklist."

        lines = [
            f"👋 Hi {user.display_name}! I'll help you build habits one day at a time.",
            "Send 'new <name>' to add your first habit, or 'help' for all commands."
        ]

        if result.referral is not None:
            referral = result.referral
            event = ReferralStageCompleted(**referral.model_dump())
            self.c.notifications.dispatch([event])
        elif result.referral_error:
            reason = REFERRAL_ERROR_TEXT.get(result.referral_error, "it could not be applied")
            lines.append(f"⚠️ Invite code not applied: {reason}.")

        return "\n\n".join(lines)

    # ========================================================================
    # HABITS
    # ========================================================================

    def cmd_habits(self, user: User, args: List[str]) -> str:
        status = self.c.habits.today_status(user.id)
        if not status:
            return "You have no habits yet. Send 'new <name>' to add one."

        lines = ["📋 Today's habits:"]
        for position, (habit, done) in enumerate(status, start=1):
            mark = "✅" if done else "⬜"
            reminder = f" 🔔 {habit.reminder_time}" if habit.reminder_time else ""
            lines.append(f"{position}. {mark} {habit.name}{reminder}")
        return "\n".join(lines)

    def cmd_new(self, user: User, args: List[str]) -> str:
        if not args:
            self.c.sessions.set(user.external_id, {"state": AWAITING_HABIT_NAME})
            return "✏️ What habit do you want to track? Send its name (or 'cancel')."
        return self._create_habit(user, " ".join(args))

    def _create_habit(self, user: User, name: str) -> str:
        try:
            habit = self.c.habits.create_habit(user.id, name)
        except HabitLimitReachedError:
            limit = self.c.habits.habit_limit(user)
            if user.has_active_subscription(self.c.habits.clock()):
                return f"🔒 You've reached the limit of {limit} active habits. Delete one to add another."
            return f"🔒 You've reached the free limit of {limit} active habits. Send 'premium' to unlock more."
        except InvalidHabitDataError as e:
            return f"⚠️ {e}"
        return f"✅ Habit '{habit.name}' added. Send 'done <N>' when you complete it."

    def cmd_done(self, user: User, args: List[str]) -> str:
        try:
            habit = self._habit_by_number(user, args)
            _, events = self.c.progress.complete_habit(user.id, habit.id)
        except (InvalidHabitDataError, HabitNotFoundError, AccessDeniedError) as e:
            return f"⚠️ {e}"

        self.c.notifications.dispatch(events)
        current, _ = self.c.habits.habit_streaks(habit.id)
        return f"✅ '{habit.name}' done for today. Streak: {current} day(s) 🔥"

    def cmd_undo(self, user: User, args: List[str]) -> str:
        try:
            habit = self._habit_by_number(user, args)
            self.c.habits.uncomplete_habit(user.id, habit.id)
        except (InvalidHabitDataError, HabitNotFoundError, AccessDeniedError) as e:
            return f"⚠️ {e}"
        return f"↩️ '{habit.name}' unmarked for today."

    def cmd_delete(self, user: User, args: List[str]) -> str:
        try:
            habit = self._habit_by_number(user, args)
            self.c.habits.delete_habit(user.id, habit.id)
        except (InvalidHabitDataError, HabitNotFoundError, AccessDeniedError) as e:
            return f"⚠️ {e}"
        return f"🗑 Habit '{habit.name}' deleted. Its history is kept."

    def cmd_remind(self, user: User, args: List[str]) -> str:
        if len(args) < 2:
            return "⚠️ Usage: remind <N> <HH:MM> or remind <N> off"
        if not user.has_active_subscription(self.c.habits.clock()):
            return "🔒 Reminders are a Premium feature. Send 'premium' to subscribe."

        reminder_time = None if args[1].lower() == "off" else args[1]
        try:
            habit = self._habit_by_number(user, args)
            self.c.habits.set_reminder(user.id, habit.id, reminder_time)
        except (InvalidHabitDataError, HabitNotFoundError, AccessDeniedError) as e:
            return f"⚠️ {e}"

        if reminder_time is None:
            return f"🔕 Reminder for '{habit.name}' turned off."
        return f"🔔 I'll remind you about '{habit.name}' every day at {reminder_time}."

    def cmd_cancel(self, user: User, args: List[str]) -> str:
        self.c.sessions.clear(user.external_id)
        return "OK, cancelled."

    # ========================================================================
    # PROGRESS
    # ========================================================================

    def cmd_stats(self, user: User, args: List[str]) -> str:
        try:
            stats = self.c.habits.user_stats(user.id)
            overall = self.c.habits.overall_streak(user.id)
        except DatabaseError as e:
            logger.error(f"[CHAT] Stats unavailable for user {user.id}: {e}")
            return "📊 Stats are unavailable right now. Please try again later."

        if not stats:
            return "📊 No stats yet. Add a habit with 'new <name>' and start your streak."

        history = self.c.habits.history_days(user)
        lines = [f"📊 Your stats (last {history} days)", f"Overall streak: {overall} day(s)", ""]
        for s in stats:
            lines.append(
                f"• {s.habit_name}: {s.completed_days}/{s.total_days} days ({s.completion_rate}%), "
                f"streak {s.current_streak}, best {s.best_streak}"
            )
        return "\n".join(lines)

    def cmd_achievements(self, user: User, args: List[str]) -> str:
        streak = self.c.habits.overall_streak(user.id)
        unlocked = self.c.achievements.list_achievements(user.id)
        upcoming = self.c.achievements.next_achievement(user.id, streak)

        lines = ["🏆 Achievements"]
        if unlocked:
            lines.extend(f"• {a.type.value.replace('_', ' ')} ({a.streak_days} days)" for a in unlocked)
        else:
            lines.append("None yet. Keep your streak going!")

        if upcoming is not None:
            lines.append(
                f"\nNext: {upcoming.tier.emoji} {upcoming.tier.title} in {upcoming.days_left} day(s) "
                f"({upcoming.tier.description})"
            )
        return "\n".join(lines)

    def cmd_referral(self, user: User, args: List[str]) -> str:
        stats = self.c.referrals.get_stats(user.id)
        if not stats.can_invite:
            return (
                f"🔒 Invites unlock after a {REFERRAL_UNLOCK_STREAK}-day streak on all your habits. "
                f"{stats.days_until_unlock} day(s) to go!"
            )

        lines = [
            "🤝 Invite friends",
            stats.invite_link,
            "",
            f"Friends joined: {stats.total_referrals}",
            f"Bonus days earned: {stats.total_bonus_days}",
        ]
        if stats.accumulated_discount:
            lines.append(f"Discount on next payment: {stats.accumulated_discount}%")
        return "\n".join(lines)

    # ========================================================================
    # SUBSCRIPTION
    # ========================================================================

    def cmd_premium(self, user: User, args: List[str]) -> str:
        profile = self.c.users.get_profile(user.id)
        lines = []
        if profile.is_premium:
            lines.append(f"⭐️ Premium active until {profile.subscription_end:%Y-%m-%d %H:%M}.")
        else:
            lines.append("Premium: unlimited habits, reminders and a full year of history.")

        try:
            payment = self.c.payments.create_payment(user.id)
        except PaymentGatewayError as e:
            logger.error(f"[CHAT] Could not create payment for user {user.id}: {e}")
            lines.append("Payments are unavailable right now. Please try again later.")
            return "\n\n".join(lines)

        price = f"{payment.amount / 100:.2f}"
        if payment.promocode_id is not None:
            price += f" (-{payment.discount_percent}%, promo code)"
        elif payment.discount_percent:
            price += f" (-{payment.discount_percent}%)"
        lines.append(f"💳 30 days for {price}: {payment.payment_url}")
        return "\n\n".join(lines)

    def cmd_promo(self, user: User, args: List[str]) -> str:
        if not args:
            return "⚠️ Usage: promo <CODE>"
        try:
            promo = self.c.promocodes.apply_promocode(user.id, args[0])
        except PromocodeError as e:
            return f"❌ {e}."
        return (
            f"🎟 Promo code {promo.code} applied: {promo.discount_percent}% off.\n"
            "Send 'premium' to pay; the discount is applied automatically."
        )

    def cmd_help(self, user: User, args: List[str]) -> str:
        return HELP_TEXT

