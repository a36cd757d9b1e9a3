"""
Broadcasts Service - Resumable batched delivery of admin messages

Delivery progresses one batch per scheduler tick. Progress is persisted
after each batch, so a paused or interrupted broadcast resumes from the
last user it reached.
"""
from datetime import datetime
from typing import Callable, List, Optional
import logging
import threading
import time

from app.core.constants import BROADCAST_BATCH_SIZE, BROADCAST_SEND_DELAY_SECONDS
from app.core.exceptions import BroadcastAlreadyRunningError, BroadcastNotFoundError
from app.models import Broadcast, BroadcastStatus, CreateBroadcastRequest
from app.utils.timezone import get_reference_now

logger = logging.getLogger(__name__)


class BroadcastService:
    """
    Admin broadcast lifecycle: draft -> running -> paused <-> running -> completed
    """

    def __init__(self, repo, send: Callable[[str, str], object],
                 clock: Callable[[], datetime] = get_reference_now,
                 sleep: Callable[[float], None] = time.sleep):
        """
        Args:
            repo: Storage repository
            send: Transport callback send(recipient, message); raises on failure
            clock: Current-time provider
            sleep: Pause between sends
        """
        self.repo = repo
        self.send = send
        self.clock = clock
        self.sleep = sleep
        self._batch_lock = threading.Lock()

    def _get(self, broadcast_id: int) -> Broadcast:
        broadcast = self.repo.get_broadcast(broadcast_id)
        if broadcast is None:
            raise BroadcastNotFoundError(f"Broadcast {broadcast_id} not found")
        return broadcast

    def create_broadcast(self, request: CreateBroadcastRequest) -> Broadcast:
        broadcast = self.repo.create_broadcast(request.name, request.text)
        logger.info(f"[BROADCAST] Created broadcast {broadcast.id} '{broadcast.name}'")
        return broadcast

    def list_broadcasts(self) -> List[Broadcast]:
        return self.repo.list_broadcasts()

    def start_broadcast(self, broadcast_id: int) -> Broadcast:
        """
        Start a draft broadcast or resume a paused one

        Raises:
            BroadcastNotFoundError: If the broadcast does not exist
            BroadcastAlreadyRunningError: If another broadcast is running
        """
        broadcast = self._get(broadcast_id)
        if broadcast.status in (BroadcastStatus.RUNNING, BroadcastStatus.COMPLETED):
            return broadcast

        running = self.repo.get_running_broadcast()
        if running is not None and running.id != broadcast_id:
            raise BroadcastAlreadyRunningError(f"Broadcast {running.id} is already running")

        update = {"status": BroadcastStatus.RUNNING.value}
        if broadcast.status == BroadcastStatus.DRAFT:
            update["total_users"] = self.repo.count_broadcast_recipients()
            update["started_at"] = self.clock()
        self.repo.update_broadcast(broadcast_id, update)
        logger.info(f"[BROADCAST] Broadcast {broadcast_id} running from user {broadcast.last_user_id}")
        return self._get(broadcast_id)

    def pause_broadcast(self, broadcast_id: int) -> Broadcast:
        broadcast = self._get(broadcast_id)
        if broadcast.status == BroadcastStatus.RUNNING:
            self.repo.update_broadcast(broadcast_id, {"status": BroadcastStatus.PAUSED.value})
            logger.info(f"[BROADCAST] Broadcast {broadcast_id} paused at user {broadcast.last_user_id}")
        return self._get(broadcast_id)

    def run_batch(self) -> Optional[Broadcast]:
        """
        Deliver the next batch of the running broadcast, if any

        Returns:
            The broadcast after this batch, or None when nothing ran
        """
        if not self._batch_lock.acquire(blocking=False):
            return None
        try:
            broadcast = self.repo.get_running_broadcast()
            if broadcast is None:
                return None

            recipients = self.repo.list_broadcast_recipients(broadcast.last_user_id, BROADCAST_BATCH_SIZE)
            if not recipients:
                self.repo.update_broadcast(broadcast.id, {
                    "status": BroadcastStatus.COMPLETED.value,
                    "completed_at": self.clock()
                })
                logger.info(
                    f"[BROADCAST] Broadcast {broadcast.id} completed: "
                    f"sent={broadcast.sent_count}, failed={broadcast.failed_count}"
                )
                return self._get(broadcast.id)

            sent, failed = broadcast.sent_count, broadcast.failed_count
            for user in recipients:
                try:
                    self.send(user.external_id, broadcast.text)
                    sent += 1
                except Exception as e:
                    failed += 1
                    logger.warning(f"[BROADCAST] Failed to send to user {user.id}: {e}")
                self.sleep(BROADCAST_SEND_DELAY_SECONDS)

            self.repo.update_broadcast(broadcast.id, {
                "sent_count": sent,
                "failed_count": failed,
                "last_user_id": recipients[-1].id
            })
            return self._get(broadcast.id)
        finally:
            self._batch_lock.release()
