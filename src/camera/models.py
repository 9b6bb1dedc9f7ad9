# dataclass models shared by the decoder and its OpenCV backends

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SymbolFormat(str, Enum):
    EAN_13 = "ean_13"
    EAN_8 = "ean_8"
    UPC_A = "upc_a"
    UPC_E = "upc_e"
    CODE_128 = "code_128"
    CODE_39 = "code_39"
    CODE_93 = "code_93"
    CODABAR = "codabar"
    ITF = "itf"  # interleaved 2 of 5

    @classmethod
    def from_name(cls, name: str) -> Optional["SymbolFormat"]:
        """
        Map a decoder's type label ("EAN_13", "EAN-13", "CODE128", "I25"...) to a format.
        Returns None for labels we do not know.
        """
        key = "".join(ch for ch in str(name).upper() if ch.isalnum())
        return _ALIASES.get(key)


_ALIASES = {
    "EAN13": SymbolFormat.EAN_13,
    "EAN8": SymbolFormat.EAN_8,
    "UPCA": SymbolFormat.UPC_A,
    "UPCE": SymbolFormat.UPC_E,
    "CODE128": SymbolFormat.CODE_128,
    "CODE39": SymbolFormat.CODE_39,
    "CODE93": SymbolFormat.CODE_93,
    "CODABAR": SymbolFormat.CODABAR,
    "ITF": SymbolFormat.ITF,
    "I25": SymbolFormat.ITF,
    "INTERLEAVED2OF5": SymbolFormat.ITF,
}


@dataclass(frozen=True)
class CameraConstraints:
    width: int = 640
    height: int = 480
    # OpenCV has no facing selection; device_index picks the rear camera
    facing_mode: str = "environment"
    device_index: int = 0
    frequency: float = 10.0  # frames analysed per second


@dataclass(frozen=True)
class DecodedSymbol:
    text: str
    format: SymbolFormat


@dataclass(frozen=True)
class SymbolDetected:
    """One physically distinct scan, as delivered to on_symbol_detected handlers."""

    symbol: str
    format: SymbolFormat
    epoch: int
    detected_at: float
