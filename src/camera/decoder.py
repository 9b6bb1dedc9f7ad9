from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import Any, Callable, Iterable, List, Optional, Protocol

from camera.debounce import SymbolDebouncer
from camera.models import CameraConstraints, DecodedSymbol, SymbolDetected, SymbolFormat
from utils.errors import CameraUnavailable
from utils.logger import get_logger

_logger = get_logger(__name__)


class DecoderState(Enum):
    IDLE = "idle"
    STARTING = "starting"
    ACTIVE = "active"


class FrameSource(Protocol):
    def read(self) -> Any: ...

    def release(self) -> None: ...


class SymbolReader(Protocol):
    def decode(self, frame: Any) -> List[DecodedSymbol]: ...


SymbolHandler = Callable[[SymbolDetected], None]
ErrorHandler = Callable[[CameraUnavailable], None]
PreviewSink = Callable[[Any], None]


def _default_source(constraints: CameraConstraints) -> FrameSource:
    from camera.opencv import OpenCVFrameSource

    return OpenCVFrameSource(constraints)


def _default_reader() -> SymbolReader:
    from camera.opencv import OpenCVSymbolReader

    return OpenCVSymbolReader()


def _default_encoder(frame: Any) -> Optional[bytes]:
    from camera.opencv import encode_jpeg

    return encode_jpeg(frame)


class BarcodeDecoder:
    """
    Turns a live camera stream into SymbolDetected events.

    State machine: IDLE -> STARTING -> ACTIVE -> IDLE. A failed start goes
    STARTING -> IDLE and raises CameraUnavailable; it never reaches ACTIVE.
    There is no paused state, suspending the scanner is stop() then start().

    Frames are read and decoded on worker threads; handlers are always called
    on the event loop, one detection at a time, in detection order.
    """

    def __init__(
        self,
        source_factory: Optional[Callable[[CameraConstraints], FrameSource]] = None,
        reader: Optional[SymbolReader] = None,
        encoder: Optional[Callable[[Any], Optional[bytes]]] = None,
        formats: Optional[Iterable[SymbolFormat | str]] = None,
        debounce_window: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._source_factory = source_factory or _default_source
        self._reader = reader
        self._encoder = encoder or _default_encoder
        self.formats = frozenset(SymbolFormat(f) for f in (formats or SymbolFormat))
        self._clock = clock
        self.debouncer = SymbolDebouncer(debounce_window, clock)

        self._state = DecoderState.IDLE
        self._epoch = 0
        self._source: Optional[FrameSource] = None
        self._task: Optional[asyncio.Task] = None
        self._last_frame: Any = None

        self._symbol_handlers: List[SymbolHandler] = []
        self._error_handlers: List[ErrorHandler] = []

    # ---------------------------
    # Subscriptions
    # ---------------------------

    def on_symbol_detected(self, handler: SymbolHandler) -> Callable[[], None]:
        """Register a handler; returns a callable that unregisters it."""
        self._symbol_handlers.append(handler)
        return lambda: self._symbol_handlers.remove(handler)

    def on_error(self, handler: ErrorHandler) -> Callable[[], None]:
        """Handlers for faults that end an ACTIVE session (camera unplugged etc.)."""
        self._error_handlers.append(handler)
        return lambda: self._error_handlers.remove(handler)

    # ---------------------------
    # Lifecycle
    # ---------------------------

    @property
    def state(self) -> DecoderState:
        return self._state

    @property
    def active(self) -> bool:
        return self._state is DecoderState.ACTIVE

    @property
    def epoch(self) -> int:
        """Increments on every successful start; identifies one camera session."""
        return self._epoch

    async def start(
        self,
        preview: Optional[PreviewSink] = None,
        constraints: Optional[CameraConstraints] = None,
    ) -> None:
        """
        Open the camera and begin decoding. `preview` receives every frame read.
        Raises CameraUnavailable when there is no device or no permission.
        """
        if self._state is not DecoderState.IDLE:
            return
        constraints = constraints or CameraConstraints()
        self._state = DecoderState.STARTING
        _logger.info(f"starting camera {constraints.device_index}")

        if self._reader is None:
            self._reader = _default_reader()

        try:
            source = await asyncio.to_thread(self._source_factory, constraints)
        except CameraUnavailable:
            self._state = DecoderState.IDLE
            raise
        except Exception as e:
            self._state = DecoderState.IDLE
            raise CameraUnavailable(f"Failed to initialize scanner: {e}") from e

        if self._state is not DecoderState.STARTING:
            # stop() was called while the camera was opening
            await asyncio.to_thread(source.release)
            return

        self._source = source
        self._epoch += 1
        self.debouncer.reset()
        self._state = DecoderState.ACTIVE
        self._task = asyncio.create_task(
            self._run(source, preview, constraints.frequency, self._epoch)
        )
        _logger.info(f"scanner active, epoch {self._epoch}")

    async def stop(self) -> None:
        """Release the camera and the decode task. Safe to call at any time."""
        if self._state is DecoderState.IDLE:
            return
        self._state = DecoderState.IDLE

        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        source, self._source = self._source, None
        if source is not None:
            await asyncio.to_thread(source.release)

        self._last_frame = None
        self.debouncer.reset()
        _logger.info(f"scanner stopped, epoch {self._epoch}")

    async def _run(
        self,
        source: FrameSource,
        preview: Optional[PreviewSink],
        frequency: float,
        epoch: int,
    ) -> None:
        loop = asyncio.get_running_loop()
        interval = 1.0 / frequency if frequency > 0 else 0.0
        try:
            while True:
                started = loop.time()
                frame = await asyncio.to_thread(source.read)
                if frame is None:
                    raise CameraUnavailable("Camera stream ended.")
                self._last_frame = frame
                if preview is not None:
                    preview(frame)

                decoded = await asyncio.to_thread(self._reader.decode, frame)
                for symbol in decoded:
                    self._dispatch(symbol, epoch)

                await asyncio.sleep(max(0.0, interval - (loop.time() - started)))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            _logger.exception("scanner stopped by a decode fault")
            error = e if isinstance(e, CameraUnavailable) else CameraUnavailable(str(e))
            await self.stop()
            for handler in list(self._error_handlers):
                handler(error)

    def _dispatch(self, decoded: DecodedSymbol, epoch: int) -> None:
        if self._state is not DecoderState.ACTIVE or epoch != self._epoch:
            return
        if decoded.format not in self.formats:
            _logger.debug(f"dropping {decoded.format.value} symbol {decoded.text!r}")
            return

        now = self._clock()
        if not self.debouncer.accept(decoded.text, now):
            return

        event = SymbolDetected(
            symbol=decoded.text, format=decoded.format, epoch=epoch, detected_at=now
        )
        _logger.debug(f"detected {event.symbol!r} ({event.format.value})")
        for handler in list(self._symbol_handlers):
            handler(event)

    def capture_still_frame(self) -> Optional[bytes]:
        """JPEG of the current frame, or None when the camera is not active."""
        if not self.active or self._last_frame is None:
            return None
        return self._encoder(self._last_frame)
