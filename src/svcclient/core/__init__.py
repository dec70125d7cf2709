"""Call engine: dispatch, deadline, read loop and error classification."""

from .classifier import ErrorClassifier
from .client import BUFFER_SIZE, AsyncServiceClient
from .context import CallContext, CompletionGuard
from .timeout import TimeoutGuard, TimerState

__all__ = [
    "BUFFER_SIZE",
    "AsyncServiceClient",
    "CallContext",
    "CompletionGuard",
    "ErrorClassifier",
    "TimeoutGuard",
    "TimerState",
]
