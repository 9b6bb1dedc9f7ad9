from textual import work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.screen import Screen
from textual.widgets import Footer, Header

from views.modal_dialog import QuitDialogModal
from views.widget_toast import ToastRack


class BaseScreen(Screen):
    """
    Inherited by all screens, contains common elements like
    headers, footers, the toast rack, and keybindings.
    """

    BINDINGS = [
        Binding("ctrl+q", "quit", "Quit", show=True),
    ]

    def __init__(self):
        super().__init__()

        self.configure()

    def configure(
        self,
        header_sub_title: str = "Register",
        show_toasts: bool = True,
    ) -> None:
        """
        configure behavior of the base screen
        :return:
        """
        self.app.title = "AVRYX Register"
        self.sub_title = header_sub_title
        self._show_toasts = show_toasts

    def compose(self) -> ComposeResult:
        yield Header()
        if self._show_toasts:
            yield ToastRack(self.app.controller.feedback)
        yield Footer(show_command_palette=False)

    @work()
    async def action_quit(self):
        await self.app.push_screen_wait(QuitDialogModal())
