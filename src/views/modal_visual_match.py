from typing import Optional

from textual import events, on
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, DataTable, Label, MarkdownViewer

from api.models import Product, RecognitionResult
from utils.pure import format_money


class VisualMatchModal(ModalScreen[Optional[Product]]):
    """
    Ranked products the AI matcher returned for the captured frame.
    Returns the product the operator confirmed, or None.
    """

    DEFAULT_CSS = """
    VisualMatchModal {
        align: center middle;
    }
    VisualMatchModal > Vertical {
        width: 90;
        height: auto;
        max-height: 85%;
        border: thick $primary 60%;
        background: $surface;
        padding: 1 2;
    }
    VisualMatchModal DataTable {
        height: auto;
        max-height: 12;
    }
    VisualMatchModal MarkdownViewer {
        height: auto;
        max-height: 8;
    }
    VisualMatchModal Horizontal {
        height: auto;
        align: right middle;
        margin-top: 1;
    }
    """

    def __init__(self, result: RecognitionResult, currency: str = "₱") -> None:
        super().__init__()
        self._result = result
        self._currency = currency

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Label("Visual Match: pick the product on the counter")
            yield DataTable(id="table-candidates")
            yield MarkdownViewer("", show_table_of_contents=False)
            with Horizontal():
                yield Button("Go Back", id="btn-quit")
                yield Button("Add to Cart", id="btn-addcart", variant="primary")

    async def on_mount(self):
        table = self.query_one("#table-candidates", DataTable)
        table.cursor_type = "row"
        table.add_columns("Product", "Barcode", "Price", "Stock", "Confidence")
        for idx, match in enumerate(self._result.candidates):
            product = match.product
            table.add_row(
                product.name,
                product.barcode,
                format_money(product.unit_price, self._currency),
                str(product.stock_quantity),
                f"{match.confidence:.0%}",
                key=str(idx),
            )

        md = ""
        if self._result.dominant_colors:
            colors = ", ".join(str(c) for c in self._result.dominant_colors)
            md += f"**Dominant colors:** {colors}\n\n"
        if self._result.suggestions:
            md += "**Suggestions**\n\n"
            md += "\n".join(f"- {s}" for s in self._result.suggestions)
        await self.query_one(MarkdownViewer).document.update(md)
        table.focus()

    def _selected(self) -> Optional[Product]:
        table = self.query_one("#table-candidates", DataTable)
        if not table.row_count:
            return None
        return self._result.candidates[table.cursor_row].product

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(None)

    @on(DataTable.RowSelected, "#table-candidates")
    @on(Button.Pressed, "#btn-addcart")
    def handle_addcart(self):
        self.dismiss(self._selected())

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(None)
