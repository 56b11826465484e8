"""
Cancellable, tick-driven countdown.

The timer never sleeps itself; it asks a Scheduler to call it back after
each tick interval, so tests can drive it with a manual clock and the
gateway can drive it with the running asyncio loop.
"""

from __future__ import annotations
import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger(__name__)

TickCallback = Callable[[int], None]
ExpireCallback = Callable[[], None]


class Cancellable(Protocol):
    def cancel(self) -> Any: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable: ...


class AsyncioScheduler:
    """Scheduler backed by the running event loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


_handle_ids = itertools.count(1)


@dataclass
class TimerHandle:
    duration: int
    remaining: int
    handle_id: int = field(default_factory=lambda: next(_handle_ids))
    cancelled: bool = False
    expired: bool = False
    _pending: Optional[Cancellable] = field(default=None, repr=False)

    @property
    def live(self) -> bool:
        return not (self.cancelled or self.expired)


class CountdownTimer:
    def __init__(self, scheduler: Optional[Scheduler] = None, tick_interval: float = 1.0):
        self._scheduler = scheduler or AsyncioScheduler()
        self._tick_interval = tick_interval
        self._handle: Optional[TimerHandle] = None
        self._on_tick: Optional[TickCallback] = None
        self._on_expire: Optional[ExpireCallback] = None

    @property
    def handle(self) -> Optional[TimerHandle]:
        return self._handle

    @property
    def remaining(self) -> int:
        return self._handle.remaining if self._handle else 0

    @property
    def running(self) -> bool:
        return self._handle is not None and self._handle.live

    @property
    def expired(self) -> bool:
        return self._handle is not None and self._handle.expired

    def start(
        self,
        duration_seconds: int,
        on_tick: Optional[TickCallback] = None,
        on_expire: Optional[ExpireCallback] = None,
    ) -> TimerHandle:
        if duration_seconds <= 0:
            raise ValueError("Countdown duration must be positive")

        # Re-arming: never let two countdowns drive the same owner.
        if self.running:
            self.cancel()

        handle = TimerHandle(duration=duration_seconds, remaining=duration_seconds)
        self._handle = handle
        self._on_tick = on_tick
        self._on_expire = on_expire
        self._schedule(handle)
        logger.debug(f"⏱️ Countdown {handle.handle_id} started for {duration_seconds}s")
        return handle

    def cancel(self, handle: Optional[TimerHandle] = None) -> None:
        target = handle or self._handle
        if target is None or not target.live:
            return
        target.cancelled = True
        if target._pending is not None:
            target._pending.cancel()
            target._pending = None
        logger.debug(f"⏹️ Countdown {target.handle_id} cancelled at {target.remaining}s")

    def _schedule(self, handle: TimerHandle) -> None:
        handle._pending = self._scheduler.call_later(
            self._tick_interval, lambda: self._tick(handle)
        )

    def _tick(self, handle: TimerHandle) -> None:
        # Late callbacks for cancelled or superseded handles are dropped.
        if not handle.live or handle is not self._handle:
            return

        handle._pending = None
        handle.remaining -= 1
        if self._on_tick is not None:
            self._on_tick(handle.remaining)
            if not handle.live:
                return

        if handle.remaining > 0:
            self._schedule(handle)
            return

        handle.expired = True
        logger.info(f"⌛ Countdown {handle.handle_id} expired")
        if self._on_expire is not None:
            self._on_expire()
