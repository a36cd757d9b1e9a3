"""
Ads Service - Ad cadence for free users and weighted ad selection

The only shared in-process state is a small TTL cache of active ads,
guarded by a lock.
"""
from datetime import datetime, timedelta
from typing import Callable, List, Optional
import logging
import random
import threading

from app.core.constants import AD_FREQUENCY, AD_CACHE_TTL_SECONDS
from app.core.exceptions import UserNotFoundError
from app.models import Ad, CreateAdRequest
from app.utils.timezone import get_reference_now

logger = logging.getLogger(__name__)


class AdService:
    def __init__(self, repo, clock: Callable[[], datetime] = get_reference_now,
                 rng: Optional[random.Random] = None):
        self.repo = repo
        self.clock = clock
        self.rng = rng or random.Random()
        self._lock = threading.Lock()
        self._cache: List[Ad] = []
        self._loaded_at: Optional[datetime] = None

    def refresh_cache(self) -> List[Ad]:
        ads = self.repo.list_active_ads(self.clock())
        with self._lock:
            self._cache = ads
            self._loaded_at = self.clock()
        logger.info(f"[ADS] Cached {len(ads)} active ad(s)")
        return ads

    def _cached_ads(self) -> List[Ad]:
        with self._lock:
            fresh = (
                self._loaded_at is not None
                and self._cache
                and self.clock() - self._loaded_at <= timedelta(seconds=AD_CACHE_TTL_SECONDS)
            )
            if fresh:
                return list(self._cache)
        return self.refresh_cache()

    def should_show_ad(self, user_id: int) -> bool:
        """
        Count one action for a free user and report whether an ad is due

        Premium users never see ads and their counter is left alone.

        Raises:
            UserNotFoundError: If the user does not exist
            DatabaseError: If database operation fails
        """
        user = self.repo.get_user_by_id(user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")
        if user.has_active_subscription(self.clock()):
            return False

        count = self.repo.increment_action_count(user_id)
        if count >= AD_FREQUENCY:
            self.repo.reset_action_count(user_id)
            return True
        return False

    def pick_ad(self) -> Optional[Ad]:
        """Choose an active ad at random, weighted by priority + 1"""
        ads = self._cached_ads()
        if not ads:
            return None
        return self.rng.choices(ads, weights=[ad.priority + 1 for ad in ads], k=1)[0]

    def track_view(self, ad_id: int) -> None:
        self.repo.increment_ad_counter(ad_id, "views_count")

    def track_click(self, ad_id: int) -> None:
        self.repo.increment_ad_counter(ad_id, "clicks_count")

    def create_ad(self, request: CreateAdRequest) -> Ad:
        ad = self.repo.create_ad(request.model_dump(mode="json", exclude_none=True))
        logger.info(f"[ADS] Created ad {ad.id} '{ad.name}'")
        with self._lock:
            self._loaded_at = None
        return ad

    def list_ads(self) -> List[Ad]:
        return self.repo.list_ads()
