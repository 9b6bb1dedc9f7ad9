from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from api.models import Settlement
from register.cart import Cart
from register.checkout import CheckoutPhase


@dataclass
class ScanSession:
    """
    Camera-bound part of the register state.

    Fields:
      - active: decoder is ACTIVE
      - epoch: decoder epoch of the current (or last) camera session
      - last_symbol / last_symbol_expiry: last accepted symbol and when the
        debounce window for it closes (monotonic clock)
      - error / remediation: why the camera could not start, shown to the operator
    """

    active: bool = False
    epoch: int = 0
    last_symbol: Optional[str] = None
    last_symbol_expiry: Optional[float] = None
    error: Optional[str] = None
    remediation: List[str] = field(default_factory=list)


@dataclass
class RegisterState:
    """
    Everything one register session owns. Exactly one controller holds it;
    handlers get at it through the controller, never through globals.

    Fields:
      - cart: the sale in progress
      - amount_paid: the paid-amount field exactly as the operator typed it
      - scan: camera session state
      - phase / settlement: checkout progress and the last accepted sale
      - generation: bumped when the register closes; async results captured
        under an older generation are dropped
    """

    cart: Cart = field(default_factory=Cart)
    amount_paid: str = ""
    scan: ScanSession = field(default_factory=ScanSession)
    phase: CheckoutPhase = CheckoutPhase.IDLE
    settlement: Optional[Settlement] = None
    generation: int = 0
