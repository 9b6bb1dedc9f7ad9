from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

from utils.logger import get_logger

_logger = get_logger(__name__)


class Severity(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class Toast:
    id: int
    message: str
    severity: Severity
    duration: float
    _timer: Optional[asyncio.TimerHandle] = field(default=None, repr=False, compare=False)


class FeedbackChannel:
    """
    Short-lived operator notifications.

    Each toast auto-dismisses after `duration` seconds via loop.call_later.
    dismiss() cancels that pending timer, so a toast closed by hand leaves
    nothing scheduled behind. Listeners are called after every change.
    """

    def __init__(self, duration: float = 3.0) -> None:
        self.duration = duration
        self._ids = itertools.count(1)
        self._toasts: Dict[int, Toast] = {}
        self._listeners: List[Callable[[], None]] = []

    @property
    def toasts(self) -> List[Toast]:
        return list(self._toasts.values())

    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _changed(self) -> None:
        for listener in list(self._listeners):
            listener()

    def notify(
        self,
        message: str,
        severity: Severity | str = Severity.INFO,
        duration: Optional[float] = None,
    ) -> Toast:
        toast = Toast(
            id=next(self._ids),
            message=message,
            severity=Severity(severity),
            duration=self.duration if duration is None else duration,
        )
        toast._timer = asyncio.get_running_loop().call_later(
            toast.duration, self._expire, toast.id
        )
        self._toasts[toast.id] = toast
        _logger.debug(f"toast {toast.id} [{toast.severity.value}] {message}")
        self._changed()
        return toast

    def success(self, message: str) -> Toast:
        return self.notify(message, Severity.SUCCESS)

    def error(self, message: str) -> Toast:
        return self.notify(message, Severity.ERROR)

    def warning(self, message: str) -> Toast:
        return self.notify(message, Severity.WARNING)

    def info(self, message: str) -> Toast:
        return self.notify(message, Severity.INFO)

    def _expire(self, toast_id: int) -> None:
        toast = self._toasts.pop(toast_id, None)
        if toast is not None:
            toast._timer = None
            self._changed()

    def dismiss(self, toast_id: int) -> bool:
        """Close a toast early; its auto-dismiss timer is cancelled."""
        toast = self._toasts.pop(toast_id, None)
        if toast is None:
            return False
        if toast._timer is not None:
            toast._timer.cancel()
            toast._timer = None
        self._changed()
        return True

    def dismiss_all(self) -> None:
        for toast in self._toasts.values():
            if toast._timer is not None:
                toast._timer.cancel()
                toast._timer = None
        self._toasts.clear()
        self._changed()
