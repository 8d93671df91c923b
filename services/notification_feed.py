"""Locally cached list of server-emitted alert notifications."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from threading import Lock
from typing import List, Optional

from app.schemas import Notification
from services.api_client import ApiError, SensorApiClient

logger = logging.getLogger(__name__)

FETCH_NOTIFICATIONS_FAILED = "Failed to fetch notifications."
MARK_READ_FAILED = "Failed to mark notification as read."
MARK_ALL_READ_FAILED = "Failed to mark all notifications as read."


@dataclass
class NotificationFeed:
    """Notification list with read flags applied only after the server confirms.

    Failed calls record ``error`` and return ``False``; they never raise.
    """

    api: SensorApiClient
    error: Optional[str] = None
    _notifications: List[Notification] = field(default_factory=list)
    _issued_seq: int = 0
    _applied_seq: int = 0
    _lock: Lock = field(default_factory=Lock, repr=False)

    @property
    def notifications(self) -> List[Notification]:
        with self._lock:
            return list(self._notifications)

    @property
    def unread_count(self) -> int:
        with self._lock:
            return sum(1 for notification in self._notifications if not notification.read)

    def unread(self) -> List[Notification]:
        return [notification for notification in self.notifications if not notification.read]

    def fetch_notifications(self) -> bool:
        with self._lock:
            self._issued_seq += 1
            seq = self._issued_seq

        try:
            fetched = self.api.get_notifications()
        except ApiError as exc:
            with self._lock:
                if seq < self._applied_seq:
                    logger.debug(
                        "Dropping out-of-order notifications failure", extra={"request_seq": seq}
                    )
                    return False
                self._applied_seq = seq
            self._record_error(exc, FETCH_NOTIFICATIONS_FAILED)
            return False

        with self._lock:
            if seq < self._applied_seq:
                logger.debug(
                    "Dropping out-of-order notifications response", extra={"request_seq": seq}
                )
                return False
            self._applied_seq = seq
            self._notifications = list(fetched)
            self.error = None
        return True

    def mark_as_read(self, notification_id: int) -> bool:
        try:
            self.api.mark_notification_read(notification_id)
        except ApiError as exc:
            self._record_error(exc, MARK_READ_FAILED, notification_id=notification_id)
            return False

        with self._lock:
            self._notifications = [
                n.model_copy(update={"read": True}) if n.id == notification_id else n
                for n in self._notifications
            ]
            self.error = None
        return True

    def mark_all_as_read(self) -> bool:
        try:
            self.api.mark_all_notifications_read()
        except ApiError as exc:
            self._record_error(exc, MARK_ALL_READ_FAILED)
            return False

        with self._lock:
            self._notifications = [n.model_copy(update={"read": True}) for n in self._notifications]
            self.error = None
        return True

    def clear_error(self) -> None:
        with self._lock:
            self.error = None

    def _record_error(
        self, exc: ApiError, fallback: str, notification_id: Optional[int] = None
    ) -> None:
        with self._lock:
            self.error = exc.message if exc.status_code is not None else fallback
        logger.warning(
            fallback,
            extra={
                "notification_id": notification_id,
                "status_code": exc.status_code,
                "reason": exc.message,
            },
        )
