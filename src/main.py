import asyncio
import sys
from typing import Optional

from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import LoadingIndicator

from api.auth import TokenAuth
from api.client import connect
from camera.decoder import BarcodeDecoder
from register.controller import RegisterController
from utils.config import load_settings
from utils.errors import ConfigError
from utils.logger import get_logger
from utils.messages import QuitRequestedMessage, UnauthorizedMessage
from views.modal_dialog import DialogModal
from views.scr_register import RegisterScreen

_logger = get_logger(__name__)


class PosApp(App):
    BINDINGS = [
        Binding("ctrl+t", "switch_light", "Toggle Theme", show=True),
    ]

    controller: RegisterController

    def __init__(self, controller: RegisterController, auth: Optional[TokenAuth] = None):
        super().__init__()
        self.controller = controller
        self._auth = auth

    def compose(self) -> ComposeResult:
        yield LoadingIndicator()

    async def on_mount(self) -> None:
        if self._auth is not None:
            self._auth.on_unauthorized(lambda: self.post_message(UnauthorizedMessage()))
        await self.push_screen(RegisterScreen())

    def action_switch_light(self):
        if self.theme == "textual-dark":
            self.theme = "solarized-light"
        else:
            self.theme = "textual-dark"
        self.controller.feedback.info(f"Theme changed to {self.theme}")

    @on(UnauthorizedMessage)
    @work(group="unauthorized")
    async def handle_unauthorized(self):
        # the failing request already produced its toast
        if isinstance(self.screen, DialogModal):
            return
        await self.push_screen_wait(
            DialogModal(
                "The backend rejected the register's credential. "
                "Sign in again from the dashboard and restart the register.",
                primary_text="OK",
                tone="warning",
            )
        )

    @on(QuitRequestedMessage)
    @work
    async def handle_quit(self):
        await self.controller.close()
        self.exit()


async def main_async(settings) -> None:
    auth = TokenAuth(settings.api_token)
    async with connect(settings, auth) as client:
        decoder = BarcodeDecoder(
            formats=settings.symbol_formats,
            debounce_window=settings.scan_debounce,
        )
        controller = RegisterController(client, decoder, settings)
        app = PosApp(controller, auth)
        try:
            await app.run_async()
        finally:
            await controller.close()


def run() -> None:
    try:
        settings = load_settings()
    except ConfigError as e:
        _logger.error(f"invalid configuration: {e}")
        sys.exit(2)

    _logger.info(f"register starting against {settings.api_url}")
    asyncio.run(main_async(settings))


if __name__ == "__main__":
    run()
