import time
from typing import Callable, Dict, Optional


class SymbolDebouncer:
    """
    Expiring map of symbol -> expiry time.

    A symbol is accepted once, then ignored until its expiry passes, so one pass
    of a barcode under the camera becomes a single scan. The window is fixed
    from the accepted detection; repeat detections do not extend it.
    """

    def __init__(self, window: float = 2.0, clock: Callable[[], float] = time.monotonic):
        self.window = window
        self._clock = clock
        self._expiry: Dict[str, float] = {}
        self._last: Optional[str] = None

    def accept(self, symbol: str, now: Optional[float] = None) -> bool:
        now = self._clock() if now is None else now
        self._purge(now)

        if symbol in self._expiry:
            return False

        self._expiry[symbol] = now + self.window
        self._last = symbol
        return True

    def _purge(self, now: float) -> None:
        for symbol in [s for s, expiry in self._expiry.items() if expiry <= now]:
            del self._expiry[symbol]

    def reset(self) -> None:
        self._expiry.clear()
        self._last = None

    @property
    def last_symbol(self) -> Optional[str]:
        return self._last

    @property
    def last_symbol_expiry(self) -> Optional[float]:
        if self._last is None:
            return None
        return self._expiry.get(self._last)
