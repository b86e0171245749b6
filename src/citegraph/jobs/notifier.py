"""Time-limited, dismissible user-visible banners."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum

from citegraph.config import settings

logger = logging.getLogger(__name__)


class Level(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class Banner:
    channel: str
    text: str
    level: Level
    ttl: float | None  # None = sticky until dismissed
    posted_at: float = field(default_factory=time.monotonic)

    def to_dict(self) -> dict:
        return {
            "channel": self.channel,
            "text": self.text,
            "level": self.level.value,
            "ttl": self.ttl,
        }


class Notifier:
    """
    One banner per channel; posting replaces the channel's current banner.

    Auto-dismissal is scheduled on the running event loop. A banner only
    removes itself if it is still the channel's current one.
    """

    def __init__(
        self,
        info_ttl: float | None = None,
        warning_ttl: float | None = None,
        error_ttl: float | None = None,
    ) -> None:
        self.ttls = {
            Level.INFO: info_ttl if info_ttl is not None else settings.info_message_ttl,
            Level.SUCCESS: info_ttl if info_ttl is not None else settings.info_message_ttl,
            Level.WARNING: warning_ttl if warning_ttl is not None else settings.warning_message_ttl,
            Level.ERROR: error_ttl if error_ttl is not None else settings.error_message_ttl,
        }
        self._banners: dict[str, Banner] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}

    def post(
        self,
        channel: str,
        text: str,
        level: Level = Level.INFO,
        ttl: float | None = None,
        sticky: bool = False,
    ) -> Banner:
        """Show `text` on `channel`, replacing whatever was there."""
        lifetime = None if sticky else (ttl if ttl is not None else self.ttls[level])
        banner = Banner(channel=channel, text=text, level=level, ttl=lifetime)
        self._cancel_timer(channel)
        self._banners[channel] = banner

        if lifetime is not None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
            if loop is not None:
                self._timers[channel] = loop.call_later(lifetime, self._expire, banner)

        log = logger.warning if level in (Level.WARNING, Level.ERROR) else logger.info
        log(f"[{channel}] {text}")
        return banner

    def dismiss(self, channel: str) -> None:
        self._cancel_timer(channel)
        self._banners.pop(channel, None)

    def current(self, channel: str) -> Banner | None:
        banner = self._banners.get(channel)
        if banner and banner.ttl is not None and time.monotonic() - banner.posted_at > banner.ttl:
            # Expired without a running loop to remove it
            self._banners.pop(channel, None)
            return None
        return banner

    def active(self) -> list[Banner]:
        return [b for b in (self.current(c) for c in list(self._banners)) if b is not None]

    def _expire(self, banner: Banner) -> None:
        if self._banners.get(banner.channel) is banner:
            del self._banners[banner.channel]
            self._timers.pop(banner.channel, None)

    def _cancel_timer(self, channel: str) -> None:
        timer = self._timers.pop(channel, None)
        if timer is not None:
            timer.cancel()
