import pytest

from app.core.exceptions import DatabaseError, ReferralNotUnlockedError
from app.models import CreateAdRequest, CreatePromocodeRequest
from app.services.chat import parse_command, parse_referral_code
from app.services.chat.commands import GENERIC_FAILURE, HELP_TEXT

ALICE = "whatsapp:+15551230001"
BOB = "whatsapp:+15551230002"


@pytest.fixture
def chat(container):
    def _send(text, sender=ALICE, profile_name="Alice"):
        return container.router.handle(sender, text, profile_name)

    return _send


def test_parse_command():
    assert parse_command("  /Done 2 ") == ("done", ["2"])
    assert parse_command("") == ("", [])
    assert parse_referral_code(["ref_abc123"]) == "abc123"
    assert parse_referral_code(["hello", "ref_"]) is None


# ============================================================================
# REGISTRATION
# ============================================================================

def test_start_registers_and_greets(chat, container):
    reply = chat("start")
    assert reply.startswith("👋 Hi Alice!")
    assert container.users.get_by_external_id(ALICE) is not None

    assert chat("start").startswith("👋 Welcome back, Alice!")


def test_start_with_invite_applies_referral(chat, container, sent, log_days):
    chat("start")
    referrer = container.users.get_by_external_id(ALICE)
    habit = container.habits.create_habit(referrer.id, "Read")
    log_days(habit, range(7))

    reply = chat(f"start ref_{referrer.referral_code}", sender=BOB, profile_name="Bob")

    assert "Invite code not applied" not in reply
    assert [recipient for recipient, _ in sent] == [ALICE, BOB]
    assert container.users.get_by_external_id(BOB).referred_by == referrer.id


def test_start_with_bad_invite_still_registers(chat, container):
    reply = chat("start ref_doesnotexist", sender=BOB, profile_name="Bob")
    assert "⚠️ Invite code not applied: that invite code doesn't exist." in reply
    assert container.users.get_by_external_id(BOB) is not None


def test_unknown_sender_is_registered_on_any_message(chat, container):
    assert chat("help") == HELP_TEXT
    assert container.users.get_by_external_id(ALICE).first_name == "Alice"


# ============================================================================
# HABITS
# ============================================================================

def test_two_step_habit_creation(chat, container):
    assert chat("new").startswith("✏️")
    assert chat("Drink water") == "✅ Habit 'Drink water' added. Send 'done <N>' when you complete it."
    assert chat("Something else").startswith("I didn't get that")


def test_cancel_two_step_creation(chat):
    chat("new")
    assert chat("cancel") == "OK, cancelled."
    assert chat("Drink water").startswith("I didn't get that")


def test_list_done_and_undo(chat):
    chat("new Read")
    chat("new Walk")

    assert chat("done 2") == "✅ 'Walk' done for today. Streak: 1 day(s) 🔥"
    assert chat("habits") == "📋 Today's habits:\n1. ⬜ Read\n2. ✅ Walk"
    assert chat("undo 2") == "↩️ 'Walk' unmarked for today."
    assert chat("list").endswith("2. ⬜ Walk")


def test_bad_habit_numbers(chat):
    chat("new Read")
    assert chat("done") == "⚠️ Please add the habit number, e.g. 'done 1'."
    assert chat("done 5") == "⚠️ There is no habit number 5."


def test_delete_keeps_other_habits(chat):
    chat("new Read")
    chat("new Walk")
    assert chat("delete 1") == "🗑 Habit 'Read' deleted. Its history is kept."
    assert chat("habits") == "📋 Today's habits:\n1. ⬜ Walk"


def test_free_habit_limit(chat):
    for name in ("A", "B", "C"):
        chat(f"new {name}")
    assert chat("new D").startswith("🔒 You've reached the free limit")


def test_premium_habit_limit_does_not_upsell(chat, container, repo):
    chat("start")
    user = container.users.get_by_external_id(ALICE)
    container.subscriptions.add_days(user.id, 30)
    for n in range(100):
        repo.create_habit(user.id, f"Habit {n}", "", "daily")

    assert chat("new One more") == "🔒 You've reached the limit of 100 active habits. Delete one to add another."


def test_reminders_need_premium(chat, container):
    chat("new Read")
    assert chat("remind 1 08:00").startswith("🔒 Reminders are a Premium feature")

    user = container.users.get_by_external_id(ALICE)
    container.subscriptions.add_days(user.id, 30)
    assert chat("remind 1 08:00") == "🔔 I'll remind you about 'Read' every day at 08:00."
    assert chat("remind 1 25:00").startswith("⚠️ Invalid reminder_time format")
    assert chat("remind 1 off") == "🔕 Reminder for 'Read' turned off."


# ============================================================================
# PROGRESS
# ============================================================================

def test_stats_without_habits(chat):
    assert chat("stats").startswith("📊 No stats yet.")


def test_stats_with_habits(chat):
    chat("new Read")
    chat("done 1")
    reply = chat("stats")
    assert "Overall streak: 1 day(s)" in reply
    assert "• Read: 1/1 days (100.0%), streak 1, best 1" in reply


def test_stats_unavailable_is_distinct_from_empty(chat, container, monkeypatch):
    chat("new Read")

    def broken(user_id):
        raise DatabaseError("timeout")

    monkeypatch.setattr(container.habits, "user_stats", broken)
    assert chat("stats").startswith("📊 Stats are unavailable right now.")


def test_storage_failure_gives_generic_reply(chat, container, monkeypatch):
    chat("help")

    def broken(user_id):
        raise DatabaseError("timeout")

    monkeypatch.setattr(container.habits, "today_status", broken)
    assert chat("habits") == GENERIC_FAILURE


def test_seventh_day_sends_unlock_messages(chat, container, sent, log_days):
    chat("new Read")
    user = container.users.get_by_external_id(ALICE)
    log_days(container.habits.list_habits(user.id)[0], range(1, 7))

    assert chat("done 1").endswith("Streak: 7 day(s) 🔥")
    assert len(sent) == 2
    assert "ACHIEVEMENT UNLOCKED" in sent[0][1]
    assert "REFERRAL PROGRAM UNLOCKED" in sent[1][1]

    assert "• streak 7 (7 days)" in chat("achievements")
    assert chat("referral").startswith("🤝 Invite friends")


def test_referral_locked(chat):
    assert chat("referral").startswith("🔒 Invites unlock after a 7-day streak")


# ============================================================================
# SUBSCRIPTION & ADS
# ============================================================================

def test_premium_returns_payment_link(chat, http):
    http.post.return_value.json.return_value = {
        "Success": True, "PaymentId": 1, "Status": "NEW", "PaymentURL": "https://pay.example/1"
    }
    assert chat("premium").endswith("💳 30 days for 199.00: https://pay.example/1")


def test_premium_when_gateway_fails(chat, http):
    http.post.return_value.json.return_value = {"Success": False, "ErrorCode": "1"}
    assert chat("premium").endswith("Payments are unavailable right now. Please try again later.")


def test_promo_command_discounts_premium_link(chat, container, http):
    container.promocodes.create_promocode(CreatePromocodeRequest(code="SPRING", discount_percent=30))

    assert chat("promo") == "⚠️ Usage: promo <CODE>"
    assert chat("promo winter") == "❌ Promo code not found."
    assert chat("promo spring").startswith("🎟 Promo code SPRING applied: 30% off.")

    http.post.return_value.json.return_value = {
        "Success": True, "PaymentId": 1, "Status": "NEW", "PaymentURL": "https://pay.example/1"
    }
    assert chat("premium").endswith("💳 30 days for 139.30 (-30%, promo code): https://pay.example/1")


def test_every_fifth_reply_carries_an_ad(chat, container, repo):
    ad = container.ads.create_ad(CreateAdRequest(name="promo", text="Try our app", priority=1))
    replies = [chat("help") for _ in range(5)]

    assert all("📢" not in reply for reply in replies[:4])
    assert replies[4].endswith("📢 Try our app")
    assert repo.ads[ad.id].views_count == 1


def test_rejected_commands_count_toward_ads(chat, container, monkeypatch):
    container.ads.create_ad(CreateAdRequest(name="promo", text="Try our app", priority=1))

    def locked(user_id):
        raise ReferralNotUnlockedError("Invites are locked")

    monkeypatch.setattr(container.referrals, "get_stats", locked)
    replies = [chat("done 9"), chat("dance"), chat("done"), chat("help"), chat("referral")]

    assert all("📢" not in reply for reply in replies[:4])
    assert replies[4] == "⚠️ Invites are locked\n\n📢 Try our app"


def test_storage_failures_do_not_count_toward_ads(chat, container, monkeypatch):
    container.ads.create_ad(CreateAdRequest(name="promo", text="Try our app", priority=1))
    for _ in range(4):
        chat("help")

    def broken(user_id):
        raise DatabaseError("timeout")

    monkeypatch.setattr(container.habits, "today_status", broken)
    assert chat("habits") == GENERIC_FAILURE
    assert chat("help").endswith("📢 Try our app")


def test_unknown_command(chat):
    assert chat("dance").startswith("I didn't get that")
