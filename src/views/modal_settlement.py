from textual import events, on
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Label, MarkdownViewer

from api.models import Settlement
from utils.pure import format_money, generate_markdown_table


class SettlementModal(ModalScreen[bool]):
    """
    Shown once the backend accepted a sale: total, amount paid and the change due.
    Returns True when the operator starts the next sale.
    """

    DEFAULT_CSS = """
    SettlementModal {
        align: center middle;
    }
    SettlementModal > Vertical {
        width: 64;
        height: auto;
        max-height: 80%;
        border: thick $success 60%;
        background: $surface;
        padding: 1 2;
    }
    SettlementModal MarkdownViewer {
        height: auto;
    }
    #label-change-due {
        text-style: bold;
        color: $success;
        margin: 1 0;
    }
    SettlementModal Horizontal {
        height: auto;
        align: right middle;
    }
    """

    def __init__(self, settlement: Settlement, currency: str = "₱") -> None:
        super().__init__()
        self._settlement = settlement
        self._currency = currency

    def compose(self) -> ComposeResult:
        with Vertical():
            yield MarkdownViewer("", show_table_of_contents=False)
            yield Label(
                f"Change Due {format_money(self._settlement.change_given, self._currency)}",
                id="label-change-due",
            )
            with Horizontal():
                yield Button("New Sale", id="btn-done", variant="success")

    async def on_mount(self):
        settlement = self._settlement
        headers = ["", "Amount"]
        rows = [
            ["Total", format_money(settlement.total_amount, self._currency)],
            ["Paid", format_money(settlement.payment_received, self._currency)],
            ["Change", format_money(settlement.change_given, self._currency)],
        ]
        header_md = "### Sale Completed\n\n"
        if settlement.id is not None:
            header_md += f"Sale No. **{settlement.id}**\n\n"
        md = generate_markdown_table(headers, rows, ["l", "r"])
        await self.query_one(MarkdownViewer).document.update(header_md + md)
        self.query_one("#btn-done").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(True)

    @on(Button.Pressed, "#btn-done")
    def handle_done(self):
        self.dismiss(True)
