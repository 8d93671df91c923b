"""Wires the API client, stores and pollers into one monitoring session."""

from __future__ import annotations

import logging
from typing import List, Optional

from models.catalog import SENSOR_CATALOG, SensorType
from models.records import SensorStatus
from services.alerts import alerting_types, is_reading_alert
from services.api_client import SensorApiClient
from services.auth import AuthService
from services.notification_feed import NotificationFeed
from services.poller import Poller
from services.reading_store import ReadingStore
from services.session import AuthSession
from services.threshold_store import ThresholdStore
from settings import get_settings
from storage.token_store import build_default_token_store

logger = logging.getLogger(__name__)


class SensorMonitor:
    """Owns the stores for one session and their refresh timers.

    ``start()`` mounts the monitor: one initial fetch of each store, then
    readings every ``readings_interval`` and notifications every
    ``notifications_interval`` seconds. ``shutdown()`` cancels the timers;
    requests already in flight still complete and update their store.
    """

    def __init__(
        self,
        api: SensorApiClient,
        readings_interval: float = 30.0,
        notifications_interval: float = 60.0,
        keep_stale_readings: bool = False,
    ) -> None:
        self.api = api
        self.session = api.session
        self.auth = AuthService(api, api.session)
        self.readings = ReadingStore(api=api, keep_stale_on_error=keep_stale_readings)
        self.thresholds = ThresholdStore(api=api)
        self.notifications = NotificationFeed(api=api)
        self._pollers: List[Poller] = [
            Poller("readings-poller", readings_interval, self.readings.fetch_readings),
            Poller(
                "notifications-poller",
                notifications_interval,
                self.notifications.fetch_notifications,
            ),
        ]

    @property
    def running(self) -> bool:
        return any(poller.running for poller in self._pollers)

    def start(self) -> None:
        self.thresholds.fetch_thresholds()
        for poller in self._pollers:
            poller.start()
        logger.info("Monitor started")

    def refresh(self) -> None:
        """Manual pull-to-refresh of readings and thresholds."""
        self.thresholds.fetch_thresholds()
        self.readings.fetch_readings()

    def shutdown(self) -> None:
        for poller in self._pollers:
            poller.stop()
        self.api.close()
        logger.info("Monitor stopped")

    def is_alert(self, sensor_type: SensorType) -> bool:
        latest = self.readings.get_latest_reading(sensor_type)
        return is_reading_alert(latest, self.thresholds.as_mapping())

    def alerting_types(self) -> List[SensorType]:
        return alerting_types(self.readings.readings, self.thresholds.as_mapping())

    def dashboard(self) -> List[SensorStatus]:
        thresholds = self.thresholds.as_mapping()
        rows: List[SensorStatus] = []
        for sensor_type, info in SENSOR_CATALOG.items():
            latest = self.readings.get_latest_reading(sensor_type)
            rows.append(
                SensorStatus(
                    info=info,
                    latest=latest,
                    threshold=thresholds.get(sensor_type),
                    in_alert=is_reading_alert(latest, thresholds),
                )
            )
        return rows


def build_monitor(
    base_url: Optional[str] = None,
    timeout: Optional[float] = None,
    token_path: Optional[str] = None,
) -> SensorMonitor:
    settings = get_settings()
    session = AuthSession(build_default_token_store(token_path))
    api = SensorApiClient(session, base_url=base_url, timeout=timeout)
    return SensorMonitor(
        api,
        readings_interval=settings.readings_poll_interval,
        notifications_interval=settings.notifications_poll_interval,
        keep_stale_readings=settings.keep_stale_readings,
    )

