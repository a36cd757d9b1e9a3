from datetime import timedelta

import pytest

from app.core.exceptions import (
    AlreadyReferredError,
    InvalidReferralCodeError,
    ReferralNotUnlockedError,
    SelfReferralError
)
from app.models import ReferralState


@pytest.fixture
def referrer_with_streak(container, make_user, log_days):
    def _make(streak: int, name: str = "referrer"):
        user = make_user(name)
        habit = container.habits.create_habit(user.id, "Read")
        log_days(habit, range(streak))
        return user

    return _make


def register(container, n: int, code: str):
    return container.users.register_user(f"whatsapp:+1999000{n:04d}", first_name=f"Friend {n}", referral_code=code)


def test_stage1_grants_both_parties(container, repo, clock, referrer_with_streak):
    referrer = referrer_with_streak(7)

    result = register(container, 1, referrer.referral_code)

    assert result.is_new
    assert result.referral.stage == 1
    assert result.referral.referrer_bonus == 2
    assert result.referral.referred_bonus == 2
    assert result.referral.is_discount is False
    assert repo.get_user_by_id(referrer.id).subscription_end == clock() + timedelta(days=2)
    assert result.user.subscription_end == clock() + timedelta(days=2)
    assert result.user.referred_by == referrer.id

    referral = repo.get_referral_by_referred(result.user.id)
    assert referral.stage1_applied
    assert referral.state == ReferralState.STAGE1_APPLIED
    assert referral.stage1_bonus_days == 2
    assert referral.gave_discount is False


def test_unknown_code(container, make_user):
    with pytest.raises(InvalidReferralCodeError):
        container.referrals.apply_stage1(make_user(), "nope")


def test_self_referral_fails_regardless_of_streak(container, referrer_with_streak):
    user = referrer_with_streak(30)
    with pytest.raises(SelfReferralError):
        container.referrals.apply_stage1(user, user.referral_code)


def test_referrer_needs_unlock_streak(container, make_user, referrer_with_streak):
    locked = referrer_with_streak(6, "locked")
    with pytest.raises(ReferralNotUnlockedError):
        container.referrals.apply_stage1(make_user("newbie"), locked.referral_code)

    unlocked = referrer_with_streak(7, "unlocked")
    assert container.referrals.apply_stage1(make_user("another"), unlocked.referral_code) is not None


def test_second_referral_for_same_user_is_rejected(container, make_user, referrer_with_streak):
    first, second = referrer_with_streak(7, "first"), referrer_with_streak(7, "second")
    newbie = make_user("newbie")
    container.referrals.apply_stage1(newbie, first.referral_code)

    with pytest.raises(AlreadyReferredError):
        container.referrals.apply_stage1(newbie, second.referral_code)


def test_replayed_insert_is_a_no_op(container, repo, make_user, referrer_with_streak, monkeypatch):
    referrer = referrer_with_streak(7)
    newbie = make_user("newbie")
    monkeypatch.setattr(repo, "create_referral_if_absent", lambda *args: None)

    assert container.referrals.apply_stage1(newbie, referrer.referral_code) is None
    assert repo.get_user_by_id(referrer.id).subscription_end is None
    assert repo.get_user_by_id(newbie.id).subscription_end is None


def test_rejected_code_does_not_block_registration(container):
    result = register(container, 1, "missing")
    assert result.is_new
    assert result.referral is None
    assert result.referral_error == "InvalidReferralCodeError"


def test_existing_user_does_not_run_stage1(container, repo, referrer_with_streak):
    referrer = referrer_with_streak(7)
    register(container, 1, None)

    result = register(container, 1, referrer.referral_code)
    assert result.is_new is False
    assert result.referral is None
    assert repo.list_referrals_by_referrer(referrer.id) == []


def test_bonus_slot_exhaustion_switches_to_discount(container, repo, clock, referrer_with_streak):
    referrer = referrer_with_streak(7)
    for n in range(5):
        assert register(container, n, referrer.referral_code).referral.is_discount is False
    end_after_bonus_slots = repo.get_user_by_id(referrer.id).subscription_end
    assert end_after_bonus_slots == clock() + timedelta(days=10)

    sixth = register(container, 5, referrer.referral_code)

    assert sixth.referral.is_discount is True
    assert sixth.referral.referrer_bonus == 25
    assert sixth.user.subscription_end == clock() + timedelta(days=2)
    assert repo.get_referral_by_referred(sixth.user.id).gave_discount is True
    assert repo.get_referral_by_referred(sixth.user.id).stage1_bonus_days == 0

    reloaded = repo.get_user_by_id(referrer.id)
    assert reloaded.discount_percent == 25
    assert reloaded.subscription_end == end_after_bonus_slots


def test_discount_never_exceeds_cap(container, repo, referrer_with_streak):
    referrer = referrer_with_streak(7)
    for n in range(9):
        register(container, n, referrer.referral_code)

    assert repo.get_user_by_id(referrer.id).discount_percent == 50
    assert repo.count_bonus_referrals(referrer.id) == 5


def test_discount_mode_referral_never_reaches_stage2(container, repo, referrer_with_streak):
    referrer = referrer_with_streak(7)
    for n in range(6):
        register(container, n, referrer.referral_code)
    sixth = repo.get_user_by_external_id("whatsapp:+19990000005")
    referrer_end = repo.get_user_by_id(referrer.id).subscription_end

    assert container.referrals.apply_stage2(sixth.id, 7) is None
    assert repo.get_user_by_id(referrer.id).subscription_end == referrer_end
    assert repo.get_referral_by_referred(sixth.id).stage2_applied is False


def test_stage2_waits_for_threshold(container, referrer_with_streak):
    referrer = referrer_with_streak(7)
    newbie = register(container, 1, referrer.referral_code).user
    assert container.referrals.apply_stage2(newbie.id, 6) is None


def test_stage2_applies_exactly_once(container, repo, clock, referrer_with_streak):
    referrer = referrer_with_streak(7)
    newbie = register(container, 1, referrer.referral_code).user

    first = container.referrals.apply_stage2(newbie.id, 7)
    second = container.referrals.apply_stage2(newbie.id, 8)

    assert first.stage == 2
    assert first.referrer_bonus == first.referred_bonus == 3
    assert second is None
    assert repo.get_user_by_id(newbie.id).subscription_end == clock() + timedelta(days=5)


def test_full_two_stage_scenario(container, repo, clock, referrer_with_streak):
    u1 = referrer_with_streak(7, "u1")

    registration = register(container, 2, u1.referral_code)
    u2 = registration.user
    assert registration.referral.referrer_bonus == 2
    assert repo.get_referral_by_referred(u2.id).gave_discount is False

    habit = container.habits.create_habit(u2.id, "Walk")
    stage2 = []
    for day in range(7):
        if day:
            clock.advance(days=1)
        _, events = container.progress.complete_habit(u2.id, habit.id)
        stage2.extend(e for e in events if e.kind == "referral_stage_completed")

    assert len(stage2) == 1
    assert stage2[0].referrer_id == u1.id
    assert stage2[0].referred_bonus == 3

    referral = repo.get_referral_by_referred(u2.id)
    assert referral.stage2_applied
    assert referral.state == ReferralState.STAGE2_APPLIED
    assert referral.stage2_bonus_days == 3
    # The stage-1 days ran out on day 3, so the stage-2 grant restarts from now
    assert repo.get_user_by_id(u1.id).subscription_end == clock() + timedelta(days=3)
    assert repo.get_user_by_id(u2.id).subscription_end == clock() + timedelta(days=3)


def test_stats_and_invite_link(container, referrer_with_streak, monkeypatch):
    from app.core.config import settings
    monkeypatch.setattr(settings, "BOT_LINK_BASE", "https://wa.me/")
    monkeypatch.setattr(settings, "BOT_PHONE_NUMBER", "+14155238886")

    referrer = referrer_with_streak(7)
    for n in range(6):
        register(container, n, referrer.referral_code)

    stats = container.referrals.get_stats(referrer.id)
    assert stats.total_referrals == 6
    assert stats.bonus_referrals == 5
    assert stats.discount_referrals == 1
    assert stats.stage1_completed == 6
    assert stats.total_bonus_days == 10
    assert stats.accumulated_discount == 25
    assert stats.can_invite
    assert stats.invite_link == f"https://wa.me/14155238886?text=start%20ref_{referrer.referral_code}"


def test_locked_stats(container, referrer_with_streak):
    user = referrer_with_streak(4)
    stats = container.referrals.get_stats(user.id)
    assert not stats.can_invite
    assert stats.days_until_unlock == 3
    assert stats.invite_link is None


def test_get_referrer(container, referrer_with_streak):
    referrer = referrer_with_streak(7)
    newbie = register(container, 1, referrer.referral_code).user
    assert container.referrals.get_referrer(newbie.id).id == referrer.id
    assert container.referrals.get_referrer(referrer.id) is None
