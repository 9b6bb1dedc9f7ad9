from __future__ import annotations

import asyncio
from typing import Any, Callable, List, Optional

from api import products, sales, scanner
from api.client import ApiClient
from api.errors import LOOKUP_FAILED, RECOGNITION_FAILED, SEARCH_FAILED, user_message
from api.models import Product, RecognitionResult, SaleRequest, Settlement
from camera.decoder import BarcodeDecoder, DecoderState
from camera.models import CameraConstraints, SymbolDetected
from register.cart import Cart, CartLine
from register.checkout import CheckoutOrchestrator
from register.feedback import FeedbackChannel
from utils.config import Settings
from utils.errors import CameraUnavailable, ServiceError
from utils.logger import get_logger
from utils.state import RegisterState

_logger = get_logger(__name__)


class RegisterController:
    """
    Owns one register session: the RegisterState, the feedback channel, the
    checkout orchestrator and the camera decoder. Views call in here and
    re-render when a subscribed listener fires.

    Every async result is checked before it touches the state:
      - generation: bumped by close(); anything started earlier is dropped
      - camera epoch: scan and visual-match results from a stopped camera
        session are dropped
    Backend failures end as exactly one toast; nothing is retried.
    """

    def __init__(
        self,
        client: ApiClient,
        decoder: BarcodeDecoder,
        settings: Optional[Settings] = None,
        feedback: Optional[FeedbackChannel] = None,
        state: Optional[RegisterState] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.client = client
        self.decoder = decoder
        self.feedback = feedback or FeedbackChannel(self.settings.toast_seconds)
        self.state = state or RegisterState()
        self.checkout_flow = CheckoutOrchestrator(
            self.state,
            self._submit_sale,
            self.feedback,
            self.settings.currency,
            on_phase=self._changed,
        )

        self._listeners: List[Callable[[], None]] = []
        self._queue: asyncio.Queue[SymbolDetected] = asyncio.Queue()
        self._consumer: Optional[asyncio.Task] = None
        self._visual_task: Optional[asyncio.Task] = None
        self._unsubscribe = [
            decoder.on_symbol_detected(self._enqueue),
            decoder.on_error(self._camera_failed),
        ]

    @property
    def cart(self) -> Cart:
        return self.state.cart

    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _changed(self) -> None:
        for listener in list(self._listeners):
            listener()

    def _is_current(self, generation: int, epoch: Optional[int] = None) -> bool:
        if generation != self.state.generation:
            return False
        if epoch is None:
            return True
        return self.decoder.active and epoch == self.decoder.epoch

    # ---------------------------
    # Camera
    # ---------------------------

    def _constraints(self) -> CameraConstraints:
        return CameraConstraints(
            width=self.settings.camera_width,
            height=self.settings.camera_height,
            device_index=self.settings.camera_index,
            frequency=self.settings.scan_fps,
        )

    async def open_camera(self, preview: Optional[Callable[[Any], None]] = None) -> bool:
        """Start scanning. Returns False (and shows why) when the camera is unavailable."""
        if self.decoder.state is not DecoderState.IDLE:
            return self.decoder.active

        scan = self.state.scan
        self._queue = asyncio.Queue()
        try:
            await self.decoder.start(preview, self._constraints())
        except CameraUnavailable as e:
            _logger.warning(f"camera unavailable: {e}")
            scan.active = False
            scan.error = str(e)
            scan.remediation = list(e.remediation)
            self.feedback.error(str(e))
            self._changed()
            return False

        if not self.decoder.active:
            return False

        scan.active = True
        scan.epoch = self.decoder.epoch
        scan.error = None
        scan.remediation = []
        scan.last_symbol = None
        scan.last_symbol_expiry = None

        self._consumer = asyncio.create_task(self._consume(self._queue))
        self.feedback.success("Scanner ready - point at barcode")
        self._changed()
        return True

    async def close_camera(self) -> None:
        """Stop scanning; queued scans and any visual match in flight are dropped."""
        self._cancel_session_tasks()
        await self.decoder.stop()

        scan = self.state.scan
        scan.active = False
        scan.last_symbol = None
        scan.last_symbol_expiry = None
        self._changed()

    async def toggle_camera(self, preview: Optional[Callable[[Any], None]] = None) -> bool:
        if self.decoder.state is DecoderState.IDLE:
            return await self.open_camera(preview)
        await self.close_camera()
        return False

    def _cancel_session_tasks(self) -> None:
        for task in (self._consumer, self._visual_task):
            if task is not None and not task.done():
                task.cancel()
        self._consumer = None
        self._visual_task = None

    def _camera_failed(self, error: CameraUnavailable) -> None:
        self._cancel_session_tasks()
        scan = self.state.scan
        scan.active = False
        scan.error = str(error)
        scan.remediation = list(error.remediation)
        self.feedback.error(str(error))
        self._changed()

    # ---------------------------
    # Scanning
    # ---------------------------

    def _enqueue(self, event: SymbolDetected) -> None:
        if event.epoch != self.decoder.epoch:
            return
        scan = self.state.scan
        scan.last_symbol = event.symbol
        scan.last_symbol_expiry = self.decoder.debouncer.last_symbol_expiry
        self._queue.put_nowait(event)

    async def _consume(self, queue: asyncio.Queue) -> None:
        # one lookup at a time, in detection order
        while True:
            event = await queue.get()
            try:
                await self._resolve_scanned(event)
            except Exception:
                # the consumer outlives any single failed lookup
                _logger.exception(f"lookup for {event.symbol!r} failed")
                if self._is_current(self.state.generation, event.epoch):
                    self.feedback.error(LOOKUP_FAILED)
            finally:
                queue.task_done()

    async def _resolve_scanned(self, event: SymbolDetected) -> None:
        generation = self.state.generation
        try:
            product = await products.resolve_by_barcode(self.client, event.symbol)
        except ServiceError as e:
            if self._is_current(generation, event.epoch):
                self.feedback.error(user_message(e, LOOKUP_FAILED))
            return

        if not self._is_current(generation, event.epoch):
            _logger.debug(f"discarding stale lookup for {event.symbol!r}")
            return
        if product is None:
            self.feedback.warning(f"Product not found for {event.symbol}")
            return
        self.add_product(product)

    async def wait_for_scans(self) -> None:
        """Wait until every queued scan has been looked up."""
        await self._queue.join()

    async def lookup_barcode(self, symbol: str) -> Optional[Product]:
        """Direct barcode entry typed or wedge-scanned by the operator."""
        symbol = symbol.strip()
        if not symbol:
            return None

        generation = self.state.generation
        try:
            product = await products.resolve_by_barcode(self.client, symbol)
        except ServiceError as e:
            if self._is_current(generation):
                self.feedback.error(user_message(e, "Scan failed"))
            return None

        if not self._is_current(generation):
            return None
        if product is None:
            self.feedback.warning(f"Product not found for {symbol}")
            return None
        if self.add_product(product) is None:
            return None
        return product

    async def search(self, query: str) -> List[Product]:
        if len(query.strip()) < products.MIN_QUERY_LENGTH:
            return []

        generation = self.state.generation
        try:
            results = await products.search(self.client, query, self.settings.search_limit)
        except ServiceError as e:
            if self._is_current(generation):
                self.feedback.error(user_message(e, SEARCH_FAILED))
            return []
        return results if self._is_current(generation) else []

    # ---------------------------
    # Visual recognition
    # ---------------------------

    async def recognize_visual(self) -> Optional[RecognitionResult]:
        """
        Send the current camera frame to the AI matcher. Returns the ranked
        candidates for the operator to choose from, or None. Never adds to the cart.
        """
        if not self.decoder.active:
            self.feedback.warning("Open the camera scanner first.")
            return None
        if self._visual_task is not None and not self._visual_task.done():
            return None

        image = self.decoder.capture_still_frame()
        if image is None:
            self.feedback.warning("No camera frame yet. Try again.")
            return None

        generation, epoch = self.state.generation, self.decoder.epoch
        task = asyncio.create_task(scanner.recognize_visual(self.client, image))
        self._visual_task = task
        try:
            result = await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            _logger.debug("visual recognition cancelled with its camera session")
            return None
        except ServiceError as e:
            if self._is_current(generation, epoch):
                self.feedback.error(user_message(e, RECOGNITION_FAILED))
            return None
        finally:
            if self._visual_task is task:
                self._visual_task = None

        if not self._is_current(generation, epoch):
            _logger.debug("discarding stale visual recognition result")
            return None
        if not result.candidates:
            self.feedback.warning("No matching products found.")
            return None
        return result

    # ---------------------------
    # Cart
    # ---------------------------

    def _cart_locked(self) -> bool:
        """The cart is frozen while a sale is being validated or submitted."""
        if not self.checkout_flow.busy:
            return False
        self.feedback.warning("Sale in progress. Wait for it to finish.")
        return True

    def add_product(self, product: Product) -> Optional[CartLine]:
        if self._cart_locked():
            return None
        line = self.cart.add_or_increment(product)
        self.feedback.success(f"{product.name} added to cart")
        self._changed()
        return line

    def add_visual_match(self, product: Product, generation: int, epoch: int) -> Optional[CartLine]:
        """Add the operator's pick, unless the camera session it came from is gone."""
        if not self._is_current(generation, epoch):
            _logger.debug(f"discarding visual pick {product.name!r} from epoch {epoch}")
            self.feedback.warning("Camera session changed. Capture the product again.")
            return None
        return self.add_product(product)

    def change_quantity(self, product_id, delta: int) -> None:
        if self._cart_locked():
            return
        if self.cart.set_quantity(product_id, delta):
            self._changed()

    def remove_line(self, product_id) -> None:
        if self._cart_locked():
            return
        line = self.cart.get(product_id)
        if line is not None and self.cart.remove(product_id):
            self.feedback.info(f"{line.name} removed from cart")
            self._changed()

    def clear_cart(self) -> None:
        if self.cart.is_empty or self._cart_locked():
            return
        self.cart.clear()
        self.feedback.info("Cart cleared")
        self._changed()

    def set_amount_paid(self, text: str) -> None:
        self.state.amount_paid = text

    # ---------------------------
    # Checkout
    # ---------------------------

    async def _submit_sale(self, request: SaleRequest) -> Settlement:
        return await sales.create_sale(self.client, request)

    async def checkout(self) -> Optional[Settlement]:
        settlement = await self.checkout_flow.checkout()
        self._changed()
        return settlement

    def acknowledge_settlement(self) -> None:
        self.checkout_flow.acknowledge()
        self._changed()

    # ---------------------------
    # Teardown
    # ---------------------------

    async def close(self) -> None:
        """The register is going away: late results are ignored from here on."""
        self.state.generation += 1
        await self.close_camera()
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []
        self.feedback.dismiss_all()
