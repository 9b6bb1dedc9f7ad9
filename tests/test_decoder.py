import asyncio
import os
import sys
import unittest

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from camera.decoder import BarcodeDecoder, DecoderState  # noqa: E402
from camera.models import CameraConstraints, DecodedSymbol, SymbolFormat  # noqa: E402
from utils.errors import CameraUnavailable  # noqa: E402

FAST = CameraConstraints(frequency=200.0)


class FakeSource:
    def __init__(self, frames=None):
        # None in `frames` ends the stream; an exhausted list repeats "frame"
        self.frames = list(frames or [])
        self.released = False

    def read(self):
        if self.frames:
            return self.frames.pop(0)
        return "frame"

    def release(self):
        self.released = True


class ScriptedReader:
    def __init__(self, script=None):
        self.script = list(script or [])
        self.calls = 0

    def decode(self, frame):
        self.calls += 1
        if self.script:
            return self.script.pop(0)
        return []


async def wait_until(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


class DecoderTestCase(unittest.IsolatedAsyncioTestCase):
    def make_decoder(self, source=None, reader=None, **kwargs):
        self.source = source or FakeSource()
        self.reader = reader or ScriptedReader()
        return BarcodeDecoder(
            source_factory=lambda _constraints: self.source,
            reader=self.reader,
            encoder=lambda frame: b"jpeg:" + str(frame).encode(),
            clock=lambda: 0.0,
            **kwargs,
        )

    async def test_start_stop_lifecycle(self):
        decoder = self.make_decoder()
        self.assertIs(decoder.state, DecoderState.IDLE)
        self.assertEqual(decoder.epoch, 0)

        await decoder.start(None, FAST)
        self.assertIs(decoder.state, DecoderState.ACTIVE)
        self.assertEqual(decoder.epoch, 1)

        # starting twice is a no-op
        await decoder.start(None, FAST)
        self.assertEqual(decoder.epoch, 1)

        await decoder.stop()
        self.assertIs(decoder.state, DecoderState.IDLE)
        self.assertTrue(self.source.released)

        # stop is idempotent
        await decoder.stop()
        self.assertIs(decoder.state, DecoderState.IDLE)

        self.source = FakeSource()
        await decoder.start(None, FAST)
        self.assertEqual(decoder.epoch, 2)
        await decoder.stop()

    async def test_unavailable_camera_returns_to_idle(self):
        def no_camera(_constraints):
            raise CameraUnavailable("Failed to initialize scanner: no camera")

        decoder = BarcodeDecoder(source_factory=no_camera, reader=ScriptedReader())
        with self.assertRaises(CameraUnavailable) as ctx:
            await decoder.start(None, FAST)
        self.assertIs(decoder.state, DecoderState.IDLE)
        self.assertEqual(decoder.epoch, 0)
        self.assertTrue(ctx.exception.remediation)

    async def test_unexpected_open_failure_is_wrapped(self):
        def broken(_constraints):
            raise OSError("device busy")

        decoder = BarcodeDecoder(source_factory=broken, reader=ScriptedReader())
        with self.assertRaises(CameraUnavailable) as ctx:
            await decoder.start(None, FAST)
        self.assertIn("device busy", str(ctx.exception))
        self.assertIs(decoder.state, DecoderState.IDLE)

    async def test_capture_still_frame(self):
        decoder = self.make_decoder()
        self.assertIsNone(decoder.capture_still_frame())

        frames = []
        await decoder.start(frames.append, FAST)
        await wait_until(lambda: len(frames) > 0)
        self.assertEqual(decoder.capture_still_frame(), b"jpeg:frame")

        await decoder.stop()
        self.assertIsNone(decoder.capture_still_frame())

    async def test_format_filter_and_dedupe(self):
        reader = ScriptedReader(
            [
                [DecodedSymbol("4800016644290", SymbolFormat.EAN_13)],
                [DecodedSymbol("CODE-1", SymbolFormat.CODE_128)],
                [DecodedSymbol("4800016644290", SymbolFormat.EAN_13)],
                [DecodedSymbol("4800016644290", SymbolFormat.EAN_13)],
            ]
        )
        decoder = self.make_decoder(reader=reader, formats=["ean_13"])
        events = []
        decoder.on_symbol_detected(events.append)

        await decoder.start(None, FAST)
        await wait_until(lambda: reader.calls >= 5)
        await decoder.stop()

        self.assertEqual([e.symbol for e in events], ["4800016644290"])
        self.assertIs(events[0].format, SymbolFormat.EAN_13)
        self.assertEqual(events[0].epoch, 1)

    async def test_unsubscribe(self):
        reader = ScriptedReader([[DecodedSymbol("A", SymbolFormat.EAN_8)]])
        decoder = self.make_decoder(reader=reader)
        events = []
        unsubscribe = decoder.on_symbol_detected(events.append)
        unsubscribe()

        await decoder.start(None, FAST)
        await wait_until(lambda: reader.calls >= 2)
        await decoder.stop()
        self.assertEqual(events, [])

    async def test_stream_end_stops_and_reports(self):
        decoder = self.make_decoder(source=FakeSource(["frame", None]))
        errors = []
        decoder.on_error(errors.append)

        await decoder.start(None, FAST)
        await wait_until(lambda: errors)

        self.assertIsInstance(errors[0], CameraUnavailable)
        self.assertIs(decoder.state, DecoderState.IDLE)
        self.assertTrue(self.source.released)
