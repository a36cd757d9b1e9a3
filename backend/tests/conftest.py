"""
Shared fixtures: an in-memory repository with the same uniqueness and
claim semantics as the Supabase schema, a frozen clock, and a fully wired
service container.
"""
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Set, Tuple
from unittest.mock import MagicMock
import itertools
import random

import pytest

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
    User
)
from app.services import ServiceContainer
from app.utils.timezone import get_reference_tz


class InMemoryRepository:
    """Dict-backed stand-in for SupabaseRepository"""

    def __init__(self):
        self._ids = itertools.count(1)
        self.users: Dict[int, User] = {}
        self.habits: Dict[int, Habit] = {}
        self.logs: Dict[Tuple[int, date], HabitLog] = {}
        self.achievements: Dict[Tuple[int, str], Achievement] = {}
        self.referrals: Dict[int, Referral] = {}
        self.payments: Dict[str, Payment] = {}
        self.ads: Dict[int, Ad] = {}
        self.broadcasts: Dict[int, Broadcast] = {}
        self.promocodes: Dict[int, Promocode] = {}
        self.promocode_usages: Set[Tuple[int, int]] = set()

    @staticmethod
    def _update(model, changes: Dict[str, Any]):
        return type(model).model_validate({**model.model_dump(), **changes})

    # users

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        return self.users.get(user_id)

    def get_user_by_external_id(self, external_id: str) -> Optional[User]:
        return next((u for u in self.users.values() if u.external_id == external_id), None)

    def get_user_by_referral_code(self, code: str) -> Optional[User]:
        return next((u for u in self.users.values() if u.referral_code == code), None)

    def upsert_user(self, external_id, username, first_name, timezone, referral_code) -> Tuple[User, bool]:
        existing = self.get_user_by_external_id(external_id)
        if existing is not None:
            updated = self._update(existing, {"username": username, "first_name": first_name})
            self.users[updated.id] = updated
            return updated, False

        user = User(
            id=next(self._ids),
            external_id=external_id,
            username=username,
            first_name=first_name,
            timezone=timezone,
            referral_code=referral_code
        )
        self.users[user.id] = user
        return user, True

    def set_referred_by(self, user_id: int, referrer_id: int) -> None:
        user = self.users[user_id]
        if user.referred_by is None:
            self.users[user_id] = self._update(user, {"referred_by": referrer_id})

    def set_subscription_end(self, user_id: int, end: datetime) -> None:
        self.users[user_id] = self._update(self.users[user_id], {"subscription_end": end})

    def compare_and_set_subscription_end(self, user_id, expected, new_end) -> bool:
        user = self.users[user_id]
        if user.subscription_end != expected:
            return False
        self.users[user_id] = self._update(user, {"subscription_end": new_end})
        return True

    def compare_and_set_discount(self, user_id, expected, new_percent) -> bool:
        user = self.users[user_id]
        if user.discount_percent != expected:
            return False
        self.users[user_id] = self._update(user, {"discount_percent": new_percent})
        return True

    def increment_action_count(self, user_id: int) -> int:
        user = self.users[user_id]
        self.users[user_id] = self._update(user, {"action_count": user.action_count + 1})
        return user.action_count + 1

    def reset_action_count(self, user_id: int) -> None:
        self.users[user_id] = self._update(self.users[user_id], {"action_count": 0})

    def count_broadcast_recipients(self) -> int:
        return sum(1 for u in self.users.values() if u.subscribed_to_broadcasts)

    def list_broadcast_recipients(self, after_user_id: int, limit: int) -> List[User]:
        users = sorted(
            (u for u in self.users.values() if u.subscribed_to_broadcasts and u.id > after_user_id),
            key=lambda u: u.id
        )
        return users[:limit]

    # habits

    def create_habit(self, user_id, name, description, frequency, reminder_time=None) -> Habit:
        habit = Habit(
            id=next(self._ids),
            user_id=user_id,
            name=name,
            description=description,
            frequency=frequency,
            reminder_time=reminder_time
        )
        self.habits[habit.id] = habit
        return habit

    def get_habit_by_id(self, habit_id: int) -> Optional[Habit]:
        return self.habits.get(habit_id)

    def list_active_habits(self, user_id: int) -> List[Habit]:
        return [h for h in self.habits.values() if h.user_id == user_id and h.is_active]

    def count_active_habits(self, user_id: int) -> int:
        return len(self.list_active_habits(user_id))

    def deactivate_habit(self, habit_id: int) -> None:
        self.habits[habit_id] = self._update(self.habits[habit_id], {"is_active": False})

    def update_habit_reminder(self, habit_id: int, reminder_time: Optional[str]) -> None:
        self.habits[habit_id] = self._update(self.habits[habit_id], {"reminder_time": reminder_time})

    def list_habits_with_reminder(self, reminder_time: str) -> List[Habit]:
        return [h for h in self.habits.values() if h.is_active and h.reminder_time == reminder_time]

    # logs

    def upsert_log(self, habit_id, user_id, day, completed, note="") -> HabitLog:
        key = (habit_id, day)
        existing = self.logs.get(key)
        log = HabitLog(
            id=existing.id if existing else next(self._ids),
            habit_id=habit_id,
            user_id=user_id,
            date=day,
            completed=completed,
            note=note
        )
        self.logs[key] = log
        return log

    def list_logs_for_user_on_day(self, user_id: int, day: date) -> List[HabitLog]:
        return [log for log in self.logs.values() if log.user_id == user_id and log.date == day]

    def list_logs_for_user_in_range(self, user_id: int, start: date, end: date) -> List[HabitLog]:
        logs = [log for log in self.logs.values() if log.user_id == user_id and start <= log.date <= end]
        return sorted(logs, key=lambda log: log.date, reverse=True)

    def list_logs_for_habit(self, habit_id: int) -> List[HabitLog]:
        return sorted((log for log in self.logs.values() if log.habit_id == habit_id), key=lambda log: log.date)

    # achievements

    def create_achievement_if_absent(self, user_id: int, tier: AchievementTier) -> bool:
        key = (user_id, tier.type.value)
        if key in self.achievements:
            return False
        self.achievements[key] = Achievement(
            id=next(self._ids),
            user_id=user_id,
            type=tier.type,
            streak_days=tier.streak_days,
            bonus_days=tier.bonus_days
        )
        return True

    def list_achievements(self, user_id: int) -> List[Achievement]:
        return [a for (uid, _), a in self.achievements.items() if uid == user_id]

    def has_achievement(self, user_id: int, achievement_type: str) -> bool:
        return (user_id, achievement_type) in self.achievements

    # referrals

    def create_referral_if_absent(self, referrer_id, referred_id, referral_code, gave_discount) -> Optional[Referral]:
        if self.get_referral_by_referred(referred_id) is not None:
            return None
        referral = Referral(
            id=next(self._ids),
            referrer_id=referrer_id,
            referred_id=referred_id,
            referral_code=referral_code,
            gave_discount=gave_discount
        )
        self.referrals[referral.id] = referral
        return referral

    def get_referral_by_referred(self, referred_id: int) -> Optional[Referral]:
        return next((r for r in self.referrals.values() if r.referred_id == referred_id), None)

    def list_referrals_by_referrer(self, referrer_id: int) -> List[Referral]:
        return [r for r in self.referrals.values() if r.referrer_id == referrer_id]

    def get_pending_stage2_referral(self, referred_id: int) -> Optional[Referral]:
        referral = self.get_referral_by_referred(referred_id)
        if referral and referral.stage1_applied and not referral.stage2_applied and not referral.gave_discount:
            return referral
        return None

    def update_referral_stage1(self, referral_id: int, bonus_days: int) -> None:
        self.referrals[referral_id] = self._update(
            self.referrals[referral_id], {"stage1_applied": True, "stage1_bonus_days": bonus_days}
        )

    def claim_referral_stage2(self, referral_id: int, bonus_days: int) -> bool:
        referral = self.referrals[referral_id]
        if referral.stage2_applied or referral.gave_discount:
            return False
        self.referrals[referral_id] = self._update(
            referral, {"stage2_applied": True, "stage2_bonus_days": bonus_days}
        )
        return True

    def mark_referral_discount(self, referral_id: int) -> None:
        self.referrals[referral_id] = self._update(self.referrals[referral_id], {"gave_discount": True})

    def count_bonus_referrals(self, referrer_id: int) -> int:
        return sum(1 for r in self.list_referrals_by_referrer(referrer_id) if not r.gave_discount)

    # payments

    def create_payment(self, payment: Payment) -> Payment:
        stored = payment.model_copy(update={"id": next(self._ids), "created_at": datetime.now(get_reference_tz())})
        self.payments[stored.order_id] = stored
        return stored

    def get_payment_by_order_id(self, order_id: str) -> Optional[Payment]:
        return self.payments.get(order_id)

    def update_payment_status(self, order_id: str, status: PaymentStatus, gateway_id: str) -> bool:
        payment = self.payments[order_id]
        if payment.status not in OPEN_PAYMENT_STATUSES:
            return False
        self.payments[order_id] = self._update(payment, {"status": status, "gateway_id": gateway_id})
        return True

    def claim_payment_paid(self, order_id: str, paid_at: datetime) -> bool:
        payment = self.payments[order_id]
        if payment.paid_at is not None:
            return False
        self.payments[order_id] = self._update(payment, {"status": PaymentStatus.CONFIRMED, "paid_at": paid_at})
        return True

    def get_pending_payment(self, user_id: int) -> Optional[Payment]:
        pending = [
            p for p in self.payments.values()
            if p.user_id == user_id and p.status in OPEN_PAYMENT_STATUSES
        ]
        return pending[-1] if pending else None

    # promocodes

    def create_promocode_if_absent(self, code, discount_percent, max_uses) -> Optional[Promocode]:
        if any(p.code == code for p in self.promocodes.values()):
            return None
        promo = Promocode(id=next(self._ids), code=code, discount_percent=discount_percent, max_uses=max_uses)
        self.promocodes[promo.id] = promo
        return promo

    def list_promocodes(self) -> List[Promocode]:
        return list(self.promocodes.values())

    def get_promocode_by_code(self, code: str) -> Optional[Promocode]:
        return next((p for p in self.promocodes.values() if p.code == code), None)

    def get_promocode_by_id(self, promocode_id: int) -> Optional[Promocode]:
        return self.promocodes.get(promocode_id)

    def set_promocode_active(self, code: str, is_active: bool) -> Optional[Promocode]:
        promo = self.get_promocode_by_code(code)
        if promo is None:
            return None
        self.promocodes[promo.id] = self._update(promo, {"is_active": is_active})
        return self.promocodes[promo.id]

    def delete_promocode(self, code: str) -> bool:
        promo = self.get_promocode_by_code(code)
        if promo is None:
            return False
        del self.promocodes[promo.id]
        self.promocode_usages = {key for key in self.promocode_usages if key[0] != promo.id}
        for user in list(self.users.values()):
            if user.active_promocode_id == promo.id:
                self.users[user.id] = self._update(user, {"active_promocode_id": None})
        return True

    def set_active_promocode(self, user_id: int, promocode_id: Optional[int]) -> None:
        self.users[user_id] = self._update(self.users[user_id], {"active_promocode_id": promocode_id})

    def clear_active_promocode(self, user_id: int, promocode_id: int) -> None:
        if self.users[user_id].active_promocode_id == promocode_id:
            self.set_active_promocode(user_id, None)

    def has_used_promocode(self, user_id: int, promocode_id: int) -> bool:
        return (promocode_id, user_id) in self.promocode_usages

    def record_promocode_usage(self, promocode_id: int, user_id: int) -> bool:
        if (promocode_id, user_id) in self.promocode_usages:
            return False
        self.promocode_usages.add((promocode_id, user_id))
        promo = self.promocodes.get(promocode_id)
        if promo is not None:
            self.promocodes[promocode_id] = self._update(promo, {"used_count": promo.used_count + 1})
        return True

    # ads

    def create_ad(self, ad_data: Dict[str, Any]) -> Ad:
        ad = Ad.model_validate({"id": next(self._ids), **ad_data})
        self.ads[ad.id] = ad
        return ad

    def list_ads(self) -> List[Ad]:
        return list(self.ads.values())

    def list_active_ads(self, now: datetime) -> List[Ad]:
        return [
            ad for ad in self.ads.values()
            if ad.is_active
            and (ad.start_date is None or ad.start_date <= now)
            and (ad.end_date is None or ad.end_date >= now)
        ]

    def increment_ad_counter(self, ad_id: int, column: str) -> None:
        ad = self.ads[ad_id]
        self.ads[ad_id] = self._update(ad, {column: getattr(ad, column) + 1})

    # broadcasts

    def create_broadcast(self, name: str, text: str) -> Broadcast:
        broadcast = Broadcast(id=next(self._ids), name=name, text=text)
        self.broadcasts[broadcast.id] = broadcast
        return broadcast

    def get_broadcast(self, broadcast_id: int) -> Optional[Broadcast]:
        return self.broadcasts.get(broadcast_id)

    def list_broadcasts(self) -> List[Broadcast]:
        return list(self.broadcasts.values())

    def get_running_broadcast(self) -> Optional[Broadcast]:
        return next((b for b in self.broadcasts.values() if b.status == BroadcastStatus.RUNNING), None)

    def update_broadcast(self, broadcast_id: int, update_data: Dict[str, Any]) -> None:
        self.broadcasts[broadcast_id] = self._update(self.broadcasts[broadcast_id], update_data)


class FrozenClock:
    """Callable clock that only moves when told to"""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)

    def today(self) -> date:
        return self.now.date()


@pytest.fixture
def clock():
    return FrozenClock(get_reference_tz().localize(datetime(2025, 3, 10, 12, 0)))


@pytest.fixture
def repo():
    return InMemoryRepository()


@pytest.fixture
def sent():
    """Messages delivered through the transport, as (recipient, text)"""
    return []


@pytest.fixture
def http():
    return MagicMock()


@pytest.fixture
def container(repo, sent, clock, http):
    def send(recipient, message):
        sent.append((recipient, message))
        return f"SM{len(sent)}"

    return ServiceContainer(
        repo,
        send,
        clock=clock,
        http=http,
        rng=random.Random(7),
        sleep=lambda seconds: None,
        terminal_key="TestTerminal",
        password="test-password",
        test_mode=True,
        price=19900
    )


@pytest.fixture
def make_user(repo):
    counter = itertools.count(1)

    def _make(name: str = "user") -> User:
        n = next(counter)
        user, _ = repo.upsert_user(f"whatsapp:+1555000{n:04d}", name, name.title(), "Europe/Moscow", f"code{n:08d}")
        return user

    return _make


@pytest.fixture
def log_days(repo, clock):
    """Write completed logs for a habit on the given offsets back from today"""

    def _log(habit: Habit, offsets, completed: bool = True) -> None:
        today = clock.today()
        for offset in offsets:
            repo.upsert_log(habit.id, habit.user_id, today - timedelta(days=offset), completed)

    return _log
