from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from api.errors import CHECKOUT_FAILED, EMPTY_CART, user_message
from api.models import SaleItem, SaleRequest, Settlement
from register.feedback import FeedbackChannel
from utils.errors import CheckoutValidationError, ServiceError
from utils.logger import get_logger
from utils.pure import format_money, parse_money

if TYPE_CHECKING:
    from utils.state import RegisterState

_logger = get_logger(__name__)


class CheckoutPhase(Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    SUBMITTING = "submitting"
    SETTLED = "settled"


SubmitSale = Callable[[SaleRequest], Awaitable[Settlement]]


class CheckoutOrchestrator:
    """
    IDLE -> VALIDATING -> SUBMITTING -> SETTLED -> IDLE.

    Validation is local and sends nothing when it fails (VALIDATING -> IDLE).
    A rejected sale returns to IDLE with the cart and the paid amount exactly
    as they were. Only an accepted sale clears them.
    Acceptance takes the submitted quantities off the cart, nothing else.
    """

    def __init__(
        self,
        state: RegisterState,
        submit: SubmitSale,
        feedback: FeedbackChannel,
        currency: str = "₱",
        on_phase: Optional[Callable[[], None]] = None,
    ) -> None:
        self.state = state
        self._submit = submit
        self.feedback = feedback
        self.currency = currency
        self._on_phase = on_phase

    def _set_phase(self, phase: CheckoutPhase) -> None:
        self.state.phase = phase
        if self._on_phase is not None:
            self._on_phase()

    @property
    def phase(self) -> CheckoutPhase:
        return self.state.phase

    @property
    def busy(self) -> bool:
        return self.state.phase in (CheckoutPhase.VALIDATING, CheckoutPhase.SUBMITTING)

    def validate(self) -> Decimal:
        """Returns the amount paid, or raises CheckoutValidationError."""
        cart = self.state.cart
        if cart.is_empty:
            raise CheckoutValidationError(EMPTY_CART)

        paid = parse_money(self.state.amount_paid)
        if paid is None:
            raise CheckoutValidationError("Enter a valid amount paid.")

        total = cart.total()
        if paid < total:
            raise CheckoutValidationError(
                f"Insufficient payment. Need {format_money(total, self.currency)}"
            )
        return paid

    def build_request(self, amount_paid: Decimal) -> SaleRequest:
        return SaleRequest(
            items=[
                SaleItem(line.product_id, line.quantity, line.unit_price)
                for line in self.state.cart
            ],
            amount_paid=amount_paid,
        )

    async def checkout(self) -> Optional[Settlement]:
        """
        Run one checkout. Returns the settlement on acceptance, None otherwise.
        A call made while another checkout is in flight does nothing.
        """
        if self.state.phase is not CheckoutPhase.IDLE:
            _logger.info(f"checkout ignored, phase is {self.state.phase.value}")
            return None

        self._set_phase(CheckoutPhase.VALIDATING)
        try:
            amount_paid = self.validate()
        except CheckoutValidationError as e:
            self._set_phase(CheckoutPhase.IDLE)
            self.feedback.error(str(e))
            return None

        request = self.build_request(amount_paid)
        generation = self.state.generation
        self._set_phase(CheckoutPhase.SUBMITTING)
        try:
            settlement = await self._submit(request)
        except ServiceError as e:
            self._set_phase(CheckoutPhase.IDLE)
            if self.state.generation != generation:
                return None
            _logger.warning(f"sale rejected: {e}")
            self.feedback.error(user_message(e, CHECKOUT_FAILED))
            return None
        except Exception:
            self._set_phase(CheckoutPhase.IDLE)
            _logger.exception("sale submission failed unexpectedly")
            if self.state.generation == generation:
                self.feedback.error(CHECKOUT_FAILED)
            return None
        except BaseException:
            self._set_phase(CheckoutPhase.IDLE)
            raise

        if self.state.generation != generation:
            _logger.warning(f"sale {settlement.id} accepted after the register closed")
            self._set_phase(CheckoutPhase.IDLE)
            return None

        self.state.settlement = settlement
        self.state.cart.deduct(request.items)
        self.state.amount_paid = ""
        self._set_phase(CheckoutPhase.SETTLED)
        self.feedback.success("Sale completed successfully!")
        return settlement

    def acknowledge(self) -> None:
        """The settlement view was closed; ready for the next customer."""
        if self.state.phase is CheckoutPhase.SETTLED:
            self.state.settlement = None
            self._set_phase(CheckoutPhase.IDLE)
