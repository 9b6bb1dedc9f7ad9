import asyncio
import os
import sys
import unittest
from collections import deque
from decimal import Decimal

import httpx

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from api.client import ApiClient  # noqa: E402
from api.models import Product  # noqa: E402
from camera.decoder import BarcodeDecoder  # noqa: E402
from camera.models import DecodedSymbol, SymbolFormat  # noqa: E402
from register.controller import RegisterController  # noqa: E402
from register.checkout import CheckoutPhase  # noqa: E402
from register.feedback import FeedbackChannel, Severity  # noqa: E402
from utils.config import Settings  # noqa: E402
from utils.errors import CameraUnavailable  # noqa: E402

CATALOG = {
    "4800016644290": {"id": 7, "name": "Coke 1.5L", "barcode": "4800016644290", "unit_price": 65},
    "111": {"id": 1, "name": "Slow Item", "barcode": "111", "unit_price": 10},
    "222": {"id": 2, "name": "Fast Item", "barcode": "222", "unit_price": 20},
    "333": {"id": 9, "name": "Bad", "price": "N/A"},
}


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


class FakeSource:
    def read(self):
        return "frame"

    def release(self):
        pass


class QueuedReader:
    """Returns one pending symbol per decoded frame."""

    def __init__(self):
        self.pending = deque()
        self.calls = 0

    def show(self, *symbols):
        for symbol in symbols:
            self.pending.append(DecodedSymbol(symbol, SymbolFormat.EAN_13))

    def decode(self, frame):
        self.calls += 1
        if self.pending:
            return [self.pending.popleft()]
        return []


async def wait_until(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


class ControllerTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.requests = []
        self.gate = asyncio.Event()
        self.gate.set()
        self.fail_status = None

        self.clock = FakeClock()
        self.reader = QueuedReader()
        self.camera_ok = True

        def open_source(_constraints):
            if not self.camera_ok:
                raise CameraUnavailable("Failed to initialize scanner: no camera")
            return FakeSource()

        self.client = ApiClient(
            "http://pos.test", transport=httpx.MockTransport(self.handle)
        )
        self.decoder = BarcodeDecoder(
            source_factory=open_source,
            reader=self.reader,
            encoder=lambda frame: b"jpeg",
            debounce_window=2.0,
            clock=self.clock,
        )
        self.feedback = FeedbackChannel(duration=60)
        self.controller = RegisterController(
            self.client, self.decoder, Settings(scan_fps=200.0), self.feedback
        )

    async def asyncTearDown(self):
        await self.controller.close()
        await self.client.aclose()

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        await self.gate.wait()
        if self.fail_status:
            return httpx.Response(self.fail_status, json={})

        path = request.url.path
        if path.startswith("/api/v1/products/barcode/"):
            symbol = path.rsplit("/", 1)[-1]
            if symbol == "111":
                await asyncio.sleep(0.05)
            if symbol == "444":
                raise RuntimeError("lookup handler crashed")
            if symbol not in CATALOG:
                return httpx.Response(404, json={"message": "Product not found"})
            return httpx.Response(200, json={"data": CATALOG[symbol]})
        if path == "/api/v1/sales":
            return httpx.Response(
                201,
                json={
                    "data": {
                        "id": 31,
                        "total_amount": 65,
                        "payment_received": 100,
                        "change_given": 35,
                    }
                },
            )
        if path == "/api/v1/scanner/visual-recognize/base64":
            return httpx.Response(
                200,
                json={"data": {"allRankedProducts": [dict(CATALOG["111"], confidence=0.8)]}},
            )
        return httpx.Response(404, json={})

    async def drain(self):
        # every shown symbol decoded, plus one empty frame so its dispatch ran
        target = self.reader.calls + len(self.reader.pending) + 1
        await wait_until(lambda: self.reader.calls >= target)
        await self.controller.wait_for_scans()

    def messages(self, severity=None):
        return [
            t.message
            for t in self.feedback.toasts
            if severity is None or t.severity is severity
        ]

    # ---------- Camera scanning ----------

    async def test_same_barcode_inside_window_adds_once(self):
        self.assertTrue(await self.controller.open_camera())
        self.assertIn("Scanner ready - point at barcode", self.messages(Severity.SUCCESS))

        self.reader.show("4800016644290", "4800016644290", "4800016644290")
        await self.drain()
        self.assertEqual(self.controller.cart.get(7).quantity, 1)
        self.assertEqual(self.controller.state.scan.last_symbol, "4800016644290")

        # pulled away and scanned again after the window
        self.clock.now += 2.5
        self.reader.show("4800016644290")
        await self.drain()
        self.assertEqual(self.controller.cart.get(7).quantity, 2)
        self.assertEqual(self.controller.cart.total(), Decimal("130"))

    async def test_scans_are_added_in_detection_order(self):
        await self.controller.open_camera()
        self.reader.show("111", "222")
        await self.drain()
        self.assertEqual([line.product_id for line in self.controller.cart], [1, 2])

    async def test_unknown_barcode_warns(self):
        await self.controller.open_camera()
        self.reader.show("999")
        await self.drain()
        self.assertTrue(self.controller.cart.is_empty)
        self.assertEqual(self.messages(Severity.WARNING), ["Product not found for 999"])

    async def test_scan_in_flight_when_camera_closes_is_dropped(self):
        await self.controller.open_camera()
        self.gate.clear()
        self.reader.show("4800016644290")
        await wait_until(lambda: self.requests)

        await self.controller.close_camera()
        self.gate.set()
        await asyncio.sleep(0.05)
        self.assertTrue(self.controller.cart.is_empty)
        self.assertFalse(self.controller.state.scan.active)

    async def test_camera_unavailable(self):
        self.camera_ok = False
        self.assertFalse(await self.controller.open_camera())

        scan = self.controller.state.scan
        self.assertFalse(scan.active)
        self.assertIn("Failed to initialize scanner", scan.error)
        self.assertTrue(scan.remediation)
        self.assertEqual(len(self.messages(Severity.ERROR)), 1)

        # a later retry works and clears the error
        self.camera_ok = True
        self.assertTrue(await self.controller.toggle_camera())
        self.assertIsNone(scan.error)
        self.assertFalse(await self.controller.toggle_camera())
        self.assertFalse(scan.active)

    # ---------- Direct entry and search ----------

    async def test_lookup_barcode_adds_product(self):
        product = await self.controller.lookup_barcode(" 4800016644290 ")
        self.assertEqual(product.name, "Coke 1.5L")
        self.assertEqual(self.messages(Severity.SUCCESS), ["Coke 1.5L added to cart"])

    async def test_service_failure_is_one_toast(self):
        self.fail_status = 500
        self.assertIsNone(await self.controller.lookup_barcode("4800016644290"))
        self.assertEqual(self.messages(), ["Scan failed"])
        self.assertEqual(len(self.requests), 1)

        self.feedback.dismiss_all()
        self.assertEqual(await self.controller.search("coke"), [])
        self.assertEqual(self.messages(), ["Search error occurred"])

    async def test_lookup_after_close_is_dropped(self):
        self.gate.clear()
        pending = asyncio.create_task(self.controller.lookup_barcode("4800016644290"))
        await wait_until(lambda: self.requests)

        await self.controller.close()
        self.gate.set()
        self.assertIsNone(await pending)
        self.assertTrue(self.controller.cart.is_empty)

    # ---------- Visual recognition ----------

    async def test_visual_match_needs_camera(self):
        self.assertIsNone(await self.controller.recognize_visual())
        self.assertEqual(self.requests, [])
        self.assertEqual(self.messages(Severity.WARNING), ["Open the camera scanner first."])

    async def test_visual_match_returns_candidates_without_adding(self):
        frames = []
        await self.controller.open_camera(frames.append)
        await wait_until(lambda: frames)

        result = await self.controller.recognize_visual()
        self.assertEqual([m.product.id for m in result.candidates], [1])
        self.assertTrue(self.controller.cart.is_empty)

    async def test_stale_visual_result_is_discarded(self):
        frames = []
        await self.controller.open_camera(frames.append)
        await wait_until(lambda: frames)

        self.gate.clear()
        pending = asyncio.create_task(self.controller.recognize_visual())
        await wait_until(lambda: self.requests)

        await self.controller.close_camera()
        self.gate.set()
        self.assertIsNone(await pending)
        self.assertTrue(self.controller.cart.is_empty)

    # ---------- Cart operations ----------

    async def test_cart_operations_notify_listeners(self):
        changes = []
        self.controller.subscribe(lambda: changes.append(True))

        coke = Product.from_payload(CATALOG["4800016644290"])
        self.controller.add_product(coke)
        self.controller.change_quantity(7, 2)
        self.controller.change_quantity(7, -5)
        self.assertEqual(self.controller.cart.get(7).quantity, 1)

        self.controller.remove_line(7)
        self.assertTrue(self.controller.cart.is_empty)
        self.assertIn("Coke 1.5L removed from cart", self.messages())

        self.controller.add_product(coke)
        self.controller.clear_cart()
        self.assertIn("Cart cleared", self.messages())
        self.assertEqual(len(changes), 6)

    async def test_cart_is_frozen_while_a_sale_is_submitted(self):
        coke = Product.from_payload(CATALOG["4800016644290"])
        fast = Product.from_payload(CATALOG["222"])
        self.controller.add_product(coke)
        self.controller.set_amount_paid("100")
        changes = []
        self.controller.subscribe(lambda: changes.append(self.controller.checkout_flow.busy))

        self.gate.clear()
        pending = asyncio.create_task(self.controller.checkout())
        await wait_until(lambda: self.requests)
        self.assertIs(self.controller.state.phase, CheckoutPhase.SUBMITTING)
        self.assertIn(True, changes)

        self.assertIsNone(self.controller.add_product(fast))
        self.controller.change_quantity(7, 2)
        self.controller.remove_line(7)
        self.controller.clear_cart()
        self.assertEqual(
            self.messages(Severity.WARNING),
            ["Sale in progress. Wait for it to finish."] * 4,
        )
        self.assertEqual([(line.product_id, line.quantity) for line in self.controller.cart], [(7, 1)])

        self.gate.set()
        settlement = await pending
        self.assertEqual(settlement.change_given, Decimal("35"))
        self.assertTrue(self.controller.cart.is_empty)

        # unlocked again for the next customer
        self.controller.acknowledge_settlement()
        self.assertIsNotNone(self.controller.add_product(fast))

    # ---------- Unexpected lookup failures ----------

    async def test_unreadable_row_does_not_stop_scanning(self):
        await self.controller.open_camera()
        self.reader.show("333")
        await self.drain()
        self.assertTrue(self.controller.cart.is_empty)
        self.assertEqual(len(self.messages(Severity.ERROR)), 1)

        self.reader.show("222")
        await self.drain()
        self.assertEqual([line.product_id for line in self.controller.cart], [2])

    async def test_crashed_lookup_does_not_stop_scanning(self):
        await self.controller.open_camera()
        self.reader.show("444")
        await self.drain()
        self.assertEqual(self.messages(Severity.ERROR), ["Failed to lookup barcode"])

        self.reader.show("222")
        await self.drain()
        self.assertEqual([line.product_id for line in self.controller.cart], [2])

    # ---------- Visual pick ----------

    async def test_visual_pick_from_a_closed_camera_session_is_refused(self):
        await self.controller.open_camera()
        generation, epoch = self.controller.state.generation, self.decoder.epoch
        pick = Product.from_payload(CATALOG["111"])

        await self.controller.close_camera()
        await self.controller.open_camera()
        self.assertNotEqual(self.decoder.epoch, epoch)

        self.assertIsNone(self.controller.add_visual_match(pick, generation, epoch))
        self.assertTrue(self.controller.cart.is_empty)
        self.assertEqual(
            self.messages(Severity.WARNING),
            ["Camera session changed. Capture the product again."],
        )

        line = self.controller.add_visual_match(pick, generation, self.decoder.epoch)
        self.assertEqual(line.product_id, 1)
