from typing import Dict, List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.timer import Timer
from textual.widgets import Button, DataTable, Input, Label, Static

from api.models import Product
from camera.decoder import DecoderState
from register.checkout import CheckoutPhase
from utils.messages import RegisterChangedMessage
from utils.pure import format_money
from views.base_screen import BaseScreen
from views.modal_dialog import DialogModal
from views.modal_settlement import SettlementModal
from views.modal_visual_match import VisualMatchModal


class RegisterScreen(BaseScreen):
    """
    The register: search / barcode entry and the current order on the left,
    checkout and the camera scanner on the right.

    All state lives in the app's RegisterController; this screen only renders
    it and forwards operator actions.
    """

    CSS = """
    #hort-register { height: 1fr; }
    #div-left { width: 2fr; padding: 0 1; }
    #div-right { width: 1fr; min-width: 36; padding: 0 1; }
    #table-search-results { height: auto; max-height: 7; }
    #table-search-results.-empty { display: none; }
    #hort-barcode { height: auto; }
    #input-barcode { width: 1fr; }
    #table-cart { height: 1fr; }
    #hort-cart-actions { height: auto; }
    .title { text-style: bold; margin-top: 1; }
    #label-total { text-style: bold; color: $accent; }
    #btn-checkout, #btn-camera, #btn-visual { width: 100%; margin-top: 1; }
    #label-camera-status { margin-top: 1; color: $text-muted; }
    #div-camera-error { height: auto; border: round $error; padding: 0 1; margin-top: 1; }
    #div-camera-error.-hidden { display: none; }
    #label-camera-error { color: $error; text-style: bold; }
    """

    BINDINGS = [
        Binding("plus", "change_qty(1)", "Qty +", show=True, key_display="+"),
        Binding("minus", "change_qty(-1)", "Qty -", show=True, key_display="-"),
        Binding("delete", "remove_line", "Remove", show=True),
        Binding("f2", "toggle_camera", "Camera", show=True),
        Binding("f9", "checkout", "Complete Sale", show=True),
    ]

    def __init__(self) -> None:
        super().__init__()
        self.configure(header_sub_title="Register")

        self._search_timer: Optional[Timer] = None
        self._search_results: List[Product] = []
        self._cart_keys: Dict[str, object] = {}
        self._frames = 0
        self._unsubscribe = None

    @property
    def controller(self):
        return self.app.controller

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal(id="hort-register"):
            with Vertical(id="div-left"):
                yield Label("Register", classes="title")
                yield Input(
                    placeholder="Search products by name or barcode...",
                    id="input-search",
                )
                yield DataTable(id="table-search-results", classes="-empty")
                with Horizontal(id="hort-barcode"):
                    yield Input(placeholder="Direct Barcode Entry...", id="input-barcode")
                    yield Button("Enter", id="btn-barcode", variant="default")
                yield Label("Current Order", id="label-cart-title", classes="title")
                yield DataTable(id="table-cart")
                with Horizontal(id="hort-cart-actions"):
                    yield Button("-", id="btn-qty-sub")
                    yield Button("+", id="btn-qty-add")
                    yield Button("Remove", id="btn-remove", variant="warning")
                    yield Button("Clear All", id="btn-clear", variant="error")
            with Vertical(id="div-right"):
                yield Label("Checkout", classes="title")
                yield Label("Subtotal: ₱0", id="label-subtotal")
                yield Label("Discount: ₱0.00", id="label-discount")
                yield Label("Total: ₱0", id="label-total")
                yield Label("Amount Paid", classes="title")
                yield Input(placeholder="0.00", id="input-paid", type="number")
                yield Button("Complete Sale", id="btn-checkout", variant="primary")
                yield Button("Open Camera Scanner", id="btn-camera")
                yield Button("Identify by Photo", id="btn-visual")
                yield Static("Camera off", id="label-camera-status")
                with Vertical(id="div-camera-error", classes="-hidden"):
                    yield Label("", id="label-camera-error")
                    yield Label("To fix this:")
                    yield Static("", id="md-camera-steps", markup=False)

    def on_mount(self) -> None:
        results = self.query_one("#table-search-results", DataTable)
        results.cursor_type = "row"
        results.add_columns("Product", "Barcode", "Price", "Stock")

        cart = self.query_one("#table-cart", DataTable)
        cart.cursor_type = "row"
        cart.zebra_stripes = True
        cart.add_columns("Product", "Barcode", "Price", "Qty", "Total")

        # controller listeners may fire from timers or tasks, hop through a message
        self._unsubscribe = self.controller.subscribe(
            lambda: self.post_message(RegisterChangedMessage())
        )
        self.refresh_register()
        self.query_one("#input-search").focus()

    def on_unmount(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    # ---------------------------
    # Rendering
    # ---------------------------

    @on(RegisterChangedMessage)
    def handle_register_changed(self, message: RegisterChangedMessage) -> None:
        message.stop()
        self.refresh_register()

    def refresh_register(self) -> None:
        controller = self.controller
        state = controller.state
        currency = controller.settings.currency

        self._render_cart()

        total = state.cart.total()
        self.query_one("#label-subtotal", Label).content = (
            f"Subtotal: {format_money(total, currency)}"
        )
        self.query_one("#label-total", Label).content = (
            f"Total: {format_money(total, currency)}"
        )
        self.query_one("#label-cart-title", Label).content = (
            f"Current Order · {len(state.cart)} items in list"
        )

        paid_input = self.query_one("#input-paid", Input)
        if paid_input.value != state.amount_paid:
            paid_input.value = state.amount_paid

        checkout_btn = self.query_one("#btn-checkout", Button)
        busy = controller.checkout_flow.busy
        checkout_btn.disabled = busy or state.cart.is_empty
        checkout_btn.label = "Processing..." if busy else "Complete Sale"
        self.query_one("#btn-clear", Button).disabled = busy or state.cart.is_empty
        # the cart is frozen while a sale is in flight
        for selector in ("#btn-qty-sub", "#btn-qty-add", "#btn-remove", "#btn-barcode"):
            self.query_one(selector, Button).disabled = busy
        self.query_one("#input-paid", Input).disabled = busy

        self._render_camera()

    def _render_cart(self) -> None:
        table = self.query_one("#table-cart", DataTable)
        currency = self.controller.settings.currency
        cursor_row = table.cursor_row

        table.clear()
        self._cart_keys = {}
        for line in self.controller.cart:
            key = str(line.product_id)
            self._cart_keys[key] = line.product_id
            table.add_row(
                line.name,
                line.barcode,
                format_money(line.unit_price, currency),
                str(line.quantity),
                format_money(line.line_total, currency),
                key=key,
            )
        if table.row_count:
            table.move_cursor(row=min(cursor_row, table.row_count - 1))

    def _render_camera(self) -> None:
        decoder = self.controller.decoder
        scan = self.controller.state.scan

        camera_btn = self.query_one("#btn-camera", Button)
        camera_btn.label = "Close Camera" if scan.active else "Open Camera Scanner"
        camera_btn.disabled = decoder.state is DecoderState.STARTING
        self.query_one("#btn-visual", Button).disabled = not scan.active

        status = self.query_one("#label-camera-status", Static)
        if scan.active:
            last = f" · last {scan.last_symbol}" if scan.last_symbol else ""
            status.update(f"● Scanning (session {scan.epoch}){last}")
        else:
            status.update("Camera off")

        error_box = self.query_one("#div-camera-error")
        if scan.error:
            self.query_one("#label-camera-error", Label).content = scan.error
            self.query_one("#md-camera-steps", Static).update(
                "\n".join(f"• {step}" for step in scan.remediation)
            )
            error_box.remove_class("-hidden")
        else:
            error_box.add_class("-hidden")

    def _on_frame(self, frame) -> None:
        # preview sink: the terminal shows scan status rather than the video itself
        self._frames += 1
        if self._frames % 10 == 0 and self.controller.state.scan.active:
            height, width = frame.shape[:2]
            self.query_one("#label-camera-status", Static).update(
                f"● Scanning {width}x{height} (session {self.controller.state.scan.epoch})"
            )

    # ---------------------------
    # Search and barcode entry
    # ---------------------------

    @on(Input.Changed, "#input-search")
    def handle_search_changed(self, message: Input.Changed) -> None:
        if self._search_timer is not None:
            self._search_timer.stop()
            self._search_timer = None

        query = message.value.strip()
        if len(query) < 2:
            self._show_search_results([])
            return

        self._search_timer = self.set_timer(
            self.controller.settings.search_debounce,
            lambda: self.run_search(query),
        )

    @work(exclusive=True, group="search")
    async def run_search(self, query: str) -> None:
        results = await self.controller.search(query)
        if self.query_one("#input-search", Input).value.strip() != query:
            return
        self._show_search_results(results)

    def _show_search_results(self, results: List[Product]) -> None:
        currency = self.controller.settings.currency
        table = self.query_one("#table-search-results", DataTable)
        table.clear()
        self._search_results = list(results)
        for idx, product in enumerate(self._search_results):
            table.add_row(
                product.name,
                product.barcode,
                format_money(product.unit_price, currency),
                str(product.stock_quantity),
                key=str(idx),
            )
        table.set_class(not self._search_results, "-empty")

    @on(DataTable.RowSelected, "#table-search-results")
    def handle_search_pick(self, message: DataTable.RowSelected) -> None:
        idx = int(message.row_key.value)
        if idx >= len(self._search_results):
            return
        self.controller.add_product(self._search_results[idx])

        search = self.query_one("#input-search", Input)
        search.value = ""
        self._show_search_results([])
        search.focus()

    @on(Input.Submitted, "#input-barcode")
    @on(Button.Pressed, "#btn-barcode")
    @work(exclusive=True, group="barcode")
    async def handle_barcode_submit(self) -> None:
        barcode_input = self.query_one("#input-barcode", Input)
        barcode_btn = self.query_one("#btn-barcode", Button)
        symbol = barcode_input.value.strip()
        if not symbol:
            return

        barcode_input.disabled = True
        barcode_btn.disabled = True
        try:
            product = await self.controller.lookup_barcode(symbol)
        finally:
            barcode_input.disabled = False
            barcode_btn.disabled = self.controller.checkout_flow.busy

        if product is not None:
            barcode_input.value = ""
        barcode_input.focus()

    # ---------------------------
    # Cart
    # ---------------------------

    def _selected_product_id(self):
        table = self.query_one("#table-cart", DataTable)
        if not table.row_count:
            return None
        row_key = table.coordinate_to_cell_key(table.cursor_coordinate).row_key
        return self._cart_keys.get(row_key.value)

    def action_change_qty(self, delta: int) -> None:
        product_id = self._selected_product_id()
        if product_id is not None:
            self.controller.change_quantity(product_id, delta)

    def action_remove_line(self) -> None:
        product_id = self._selected_product_id()
        if product_id is not None:
            self.controller.remove_line(product_id)

    @on(Button.Pressed, "#btn-qty-add")
    def handle_qty_add(self) -> None:
        self.action_change_qty(1)

    @on(Button.Pressed, "#btn-qty-sub")
    def handle_qty_sub(self) -> None:
        self.action_change_qty(-1)

    @on(Button.Pressed, "#btn-remove")
    def handle_remove(self) -> None:
        self.action_remove_line()

    @on(Button.Pressed, "#btn-clear")
    @work()
    async def handle_clear_cart(self) -> None:
        if self.controller.cart.is_empty:
            self.controller.feedback.warning("Cart is empty.")
            return

        clear_confirmed = await self.app.push_screen_wait(
            DialogModal(
                "Do you really want to remove all items from the order?",
                primary_text="Yes",
                secondary_text="No",
                tone="error",
            )
        )
        if clear_confirmed:
            self.controller.clear_cart()

    # ---------------------------
    # Checkout
    # ---------------------------

    @on(Input.Changed, "#input-paid")
    def handle_paid_changed(self, message: Input.Changed) -> None:
        self.controller.set_amount_paid(message.value)

    @on(Input.Submitted, "#input-paid")
    @on(Button.Pressed, "#btn-checkout")
    def handle_checkout_pressed(self) -> None:
        self.action_checkout()

    @work(group="checkout")
    async def action_checkout(self) -> None:
        """
        Not exclusive: cancelling an in-flight sale would leave its outcome
        unknown. Re-entry is refused instead, here and in the orchestrator.
        """
        controller = self.controller
        checkout_btn = self.query_one("#btn-checkout", Button)
        if controller.checkout_flow.phase is not CheckoutPhase.IDLE:
            return

        checkout_btn.disabled = True
        checkout_btn.label = "Processing..."
        settlement = await controller.checkout()
        self.refresh_register()
        if settlement is None:
            return

        await self.app.push_screen_wait(
            SettlementModal(settlement, controller.settings.currency)
        )
        controller.acknowledge_settlement()
        self.query_one("#input-search").focus()

    # ---------------------------
    # Camera
    # ---------------------------

    @on(Button.Pressed, "#btn-camera")
    def handle_camera_pressed(self) -> None:
        self.action_toggle_camera()

    @work(group="camera")
    async def action_toggle_camera(self) -> None:
        camera_btn = self.query_one("#btn-camera", Button)
        if camera_btn.disabled:
            return
        camera_btn.disabled = True
        try:
            await self.controller.toggle_camera(self._on_frame)
        finally:
            camera_btn.disabled = False
            self.refresh_register()

    @on(Button.Pressed, "#btn-visual")
    @work(group="visual")
    async def handle_visual_match(self) -> None:
        controller = self.controller
        visual_btn = self.query_one("#btn-visual", Button)
        visual_btn.disabled = True
        generation, epoch = controller.state.generation, controller.decoder.epoch
        try:
            result = await controller.recognize_visual()
        finally:
            visual_btn.disabled = not controller.state.scan.active

        if result is None:
            return

        product = await self.app.push_screen_wait(
            VisualMatchModal(result, controller.settings.currency)
        )
        if product is not None:
            controller.add_visual_match(product, generation, epoch)
