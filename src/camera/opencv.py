# camera access and barcode decoding backed by OpenCV
from typing import List, Optional

import cv2
import numpy as np

from camera.models import CameraConstraints, DecodedSymbol, SymbolFormat
from utils.errors import CameraUnavailable
from utils.logger import get_logger

_logger = get_logger(__name__)


class OpenCVFrameSource:
    """A cv2.VideoCapture opened with the requested constraints."""

    def __init__(self, constraints: CameraConstraints):
        self._capture = cv2.VideoCapture(constraints.device_index)
        if not self._capture.isOpened():
            self._capture.release()
            raise CameraUnavailable(
                f"Failed to initialize scanner: camera {constraints.device_index} "
                "is missing or access was denied."
            )
        self._capture.set(cv2.CAP_PROP_FRAME_WIDTH, constraints.width)
        self._capture.set(cv2.CAP_PROP_FRAME_HEIGHT, constraints.height)
        _logger.info(
            "Camera initialized at "
            f"{self._capture.get(cv2.CAP_PROP_FRAME_WIDTH):.0f}x"
            f"{self._capture.get(cv2.CAP_PROP_FRAME_HEIGHT):.0f}"
        )

    def read(self) -> Optional[np.ndarray]:
        ok, frame = self._capture.read()
        return frame if ok else None

    def release(self) -> None:
        self._capture.release()


class OpenCVSymbolReader:
    """Runs cv2.barcode.BarcodeDetector over one frame."""

    def __init__(self):
        self._detector = cv2.barcode.BarcodeDetector()

    def decode(self, frame: np.ndarray) -> List[DecodedSymbol]:
        ok, texts, kinds, _points = self._detector.detectAndDecodeWithType(frame)
        if not ok:
            return []

        symbols = []
        for text, kind in zip(texts, kinds):
            if not text:
                continue
            symbol_format = SymbolFormat.from_name(kind)
            if symbol_format is None:
                _logger.debug(f"ignoring symbol of unknown type {kind!r}")
                continue
            symbols.append(DecodedSymbol(text=text, format=symbol_format))
        return symbols


def encode_jpeg(frame: np.ndarray, quality: int = 85) -> Optional[bytes]:
    ok, buffer = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), quality])
    if not ok:
        return None
    return buffer.tobytes()
