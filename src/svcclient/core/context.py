"""Per-call state for one request/response exchange."""

from __future__ import annotations

import asyncio
import io
import logging
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Generic, Optional, TypeVar

from ..models.config import HttpMethod

if TYPE_CHECKING:
    from ..http.protocols import TransportRequest
    from .timeout import TimeoutGuard

logger = logging.getLogger(__name__)

T = TypeVar("T")

SuccessCallback = Callable[[T], None]
ErrorCallback = Callable[[Optional[T], BaseException], None]


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class CompletionGuard:
    """
    Atomic counter deciding which terminal event owns the call.

    Only the caller that observes a pre-increment value of 0 may perform
    the abort and teardown actions that assume sole ownership.
    """

    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    def increment(self) -> int:
        """Increment and return the value seen before the increment."""
        with self._lock:
            previous = self._value
            self._value += 1
            return previous

    @property
    def completed(self) -> bool:
        return self._value > 0


@dataclass(eq=False)
class CallContext(Generic[T]):
    """
    Mutable state of one outstanding call.

    Created by AsyncServiceClient.send() and exclusively owned by that call.
    Mutated only by the call's task and its timeout guard, both running on
    the same event loop.

    Attributes:
        method: HTTP verb
        url: Resolved target URL (query string already appended)
        payload: Request object, None for bodyless calls
        response_type: Type handed to the deserializer
        on_success: Continuation for a decoded response
        on_error: Continuation for any failure
        response_buffer: Accumulated response body
        guard: Completion guard shared by the timer and the terminal read
        request_count: Response-initiation failures seen so far
        retry_attempted: True once the authentication retry was issued
        timer: Deadline timer, live between dispatch and first completion
        transport_handle: Current in-flight request
        task: Task driving the call
        timed_out: True when the deadline won the completion guard
    """

    method: HttpMethod
    url: str
    payload: Any
    response_type: Any
    on_success: Optional[SuccessCallback] = None
    on_error: Optional[ErrorCallback] = None

    response_buffer: Optional[io.BytesIO] = field(default_factory=io.BytesIO)
    guard: CompletionGuard = field(default_factory=CompletionGuard)
    request_count: int = 0
    retry_attempted: bool = False
    timer: Optional[TimeoutGuard] = None
    transport_handle: Optional[TransportRequest] = None
    task: Optional[asyncio.Task] = None
    timed_out: bool = False

    _delivered: bool = field(default=False, init=False, repr=False)

    @property
    def has_body(self) -> bool:
        """Whether the payload travels as the request body."""
        return self.method.has_body and self.payload is not None

    @property
    def completed(self) -> bool:
        return self.guard.completed

    @property
    def delivered(self) -> bool:
        """Whether an outcome has reached a continuation."""
        return self._delivered

    def handle_success(self, response: T) -> None:
        if not self._claim_delivery():
            return
        if self.on_success is not None:
            self._invoke(self.on_success, response)

    def handle_error(self, response: Optional[T], error: BaseException) -> None:
        if not self._claim_delivery():
            logger.debug(f"Dropping late error for {self.url}: {error!r}")
            return
        if self.on_error is not None:
            self._invoke(self.on_error, response, error)

    def _claim_delivery(self) -> bool:
        if self._delivered:
            return False
        self._delivered = True
        return True

    def _invoke(self, callback: Callable[..., None], *args: Any) -> None:
        # Continuation errors belong to the caller; report them like any
        # other loop callback instead of re-entering the error path.
        try:
            callback(*args)
        except Exception as exc:
            loop = _running_loop()
            if loop is None:
                raise
            loop.call_exception_handler(
                {
                    "message": f"Exception in continuation for {self.method.value} {self.url}",
                    "exception": exc,
                }
            )

    def abort(self) -> None:
        """Abort the live transport handle and interrupt the active phase."""
        if self.transport_handle is not None:
            self.transport_handle.abort()
        if self.task is not None and not self.task.done():
            self.task.cancel()

    async def wait(self) -> None:
        """Wait until the call has finished and released its resources."""
        if self.task is not None:
            await self.task

    def dispose(self) -> None:
        """Release the response buffer. Idempotent."""
        if self.response_buffer is None:
            return
        self.response_buffer.close()
        self.response_buffer = None
