from typing import Callable, List, Optional

from utils.logger import get_logger

_logger = get_logger(__name__)


class TokenAuth:
    """
    Holds the bearer credential handed to the register at startup.

    Logging in and refreshing tokens belong to the dashboard's auth service;
    the register only reads `token` and reports a 401 through
    `handle_unauthorized`, which drops the token and tells the listeners.
    """

    def __init__(self, token: Optional[str] = None):
        self.token = token
        self._listeners: List[Callable[[], None]] = []

    def on_unauthorized(self, listener: Callable[[], None]) -> None:
        self._listeners.append(listener)

    def handle_unauthorized(self) -> None:
        _logger.warning("Backend rejected the credential, token dropped.")
        self.token = None
        for listener in list(self._listeners):
            listener()
