"""Deadline timer that aborts a call it wins."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Optional

from .context import CallContext

logger = logging.getLogger(__name__)


class TimerState(str, Enum):
    """Lifecycle of a TimeoutGuard."""

    IDLE = "idle"
    ARMED = "armed"
    FIRED = "fired"
    DISARMED = "disarmed"


class TimeoutGuard:
    """
    Fixed deadline measured from dispatch, never reset by activity.

    On expiry the guard tries to claim the call's completion guard. If it
    wins, it marks the context as timed out and aborts the live transport
    handle; the active phase sees the abort as an ordinary failure. If it
    loses, it only releases itself.

    Example:
        guard = TimeoutGuard(ctx, timeout=60.0)
        guard.arm()
        ...
        guard.disarm()  # on every exit path
    """

    def __init__(
        self,
        ctx: CallContext,
        timeout: float,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self._ctx = ctx
        self.timeout = timeout
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self.state = TimerState.IDLE

    def arm(self) -> None:
        if self.state != TimerState.IDLE:
            raise RuntimeError(f"Timer already {self.state.value}")
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(self.timeout, self._expired)
        self.state = TimerState.ARMED

    def _expired(self) -> None:
        self._handle = None
        if self.state != TimerState.ARMED:
            return
        self.state = TimerState.FIRED

        if self._ctx.guard.increment() == 0:
            logger.warning(f"Request to {self._ctx.url} timed out after {self.timeout:g}s, aborting")
            self._ctx.timed_out = True
            self._ctx.abort()

    def disarm(self) -> None:
        """Cancel the pending deadline. Idempotent."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if self.state == TimerState.ARMED:
            self.state = TimerState.DISARMED

    @property
    def fired(self) -> bool:
        return self.state == TimerState.FIRED
