"""
Service container - Wires the services around one repository

Every service shares the same repository, clock and transport callback.
"""
from datetime import datetime
from typing import Callable, Optional
import random

import requests

from app.utils.session_store import SessionStore
from app.utils.timezone import get_reference_now
from .achievements import AchievementService
from .ads import AdService
from .broadcasts import BroadcastService
from .chat import CommandRouter
from .habits import HabitService, ReminderService
from .notifications import NotificationService
from .payments import PaymentService
from .progress import ProgressService
from .promocodes import PromocodeService
from .referrals import ReferralService
from .subscriptions import SubscriptionService
from .users import UserService


class ServiceContainer:
    def __init__(self, repo, send: Callable[[str, str], object],
                 clock: Callable[[], datetime] = get_reference_now,
                 http: Optional[requests.Session] = None,
                 rng: Optional[random.Random] = None,
                 sleep: Optional[Callable[[float], None]] = None,
                 **payment_options):
        """
        Args:
            repo: Storage repository
            send: Transport callback send(recipient, message); raises on failure
            clock: Current-time provider shared by every service
            http: HTTP session for the payment gateway
            rng: Random source for ad selection
            sleep: Pause between broadcast sends
            **payment_options: Overrides for PaymentService settings
        """
        self.repo = repo
        self.send = send
        self.clock = clock

        self.subscriptions = SubscriptionService(repo, clock)
        self.habits = HabitService(repo, clock)
        self.achievements = AchievementService(repo, self.subscriptions)
        self.referrals = ReferralService(repo, self.habits, self.subscriptions)
        self.users = UserService(repo, self.habits, self.referrals, clock)
        self.progress = ProgressService(self.habits, self.achievements, self.referrals)
        self.promocodes = PromocodeService(repo)
        self.payments = PaymentService(repo, self.subscriptions, self.promocodes, http, clock, **payment_options)
        self.ads = AdService(repo, clock, rng)
        broadcast_kwargs = {"sleep": sleep} if sleep is not None else {}
        self.broadcasts = BroadcastService(repo, send, clock, **broadcast_kwargs)
        self.reminders = ReminderService(repo, clock)
        self.notifications = NotificationService(send, repo)
        self.sessions = SessionStore(clock=clock)
        self.router = CommandRouter(self)
