from textual import on, work
from textual.containers import Vertical
from textual.events import Click
from textual.widgets import Static

from register.feedback import FeedbackChannel, Toast
from utils.messages import ToastsChangedMessage

ICONS = {
    "success": "✔",
    "error": "✖",
    "warning": "⚠",
    "info": "ℹ",
}


class ToastWidget(Static):
    """
    One notification; clicking it closes it early (and cancels its timer).
    """

    def __init__(self, channel: FeedbackChannel, toast: Toast) -> None:
        icon = ICONS.get(toast.severity.value, ICONS["info"])
        super().__init__(
            f"{icon}  {toast.message}",
            classes=f"toast -{toast.severity.value}",
            markup=False,
        )
        self._channel = channel
        self.toast_id = toast.id

    def on_click(self, event: Click) -> None:
        event.stop()
        self._channel.dismiss(self.toast_id)


class ToastRack(Vertical):
    """
    Docked stack of live toasts, kept in sync with a FeedbackChannel.
    """

    DEFAULT_CSS = """
    ToastRack {
        dock: bottom;
        height: auto;
        max-height: 12;
        align-horizontal: right;
        background: transparent;
    }
    ToastRack .toast {
        width: 60;
        padding: 0 1;
        margin-bottom: 1;
        color: $text;
    }
    ToastRack .-success { background: $success 70%; }
    ToastRack .-error { background: $error 70%; }
    ToastRack .-warning { background: $warning 70%; }
    ToastRack .-info { background: $primary 70%; }
    """

    def __init__(self, channel: FeedbackChannel, **kwargs) -> None:
        super().__init__(**kwargs)
        self._channel = channel
        self._unsubscribe = None

    def on_mount(self) -> None:
        # the channel calls back from timer callbacks, so hop through a message
        self._unsubscribe = self._channel.subscribe(
            lambda: self.post_message(ToastsChangedMessage())
        )
        self.sync_toasts()

    def on_unmount(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    @on(ToastsChangedMessage)
    def handle_toasts_changed(self, message: ToastsChangedMessage) -> None:
        message.stop()
        self.sync_toasts()

    @work(exclusive=True, group="toasts")
    async def sync_toasts(self) -> None:
        live = {toast.id: toast for toast in self._channel.toasts}
        shown = {child.toast_id: child for child in self.query(ToastWidget)}

        gone = [widget for toast_id, widget in shown.items() if toast_id not in live]
        if gone:
            await self.remove_children(gone)

        fresh = [
            ToastWidget(self._channel, toast)
            for toast_id, toast in live.items()
            if toast_id not in shown
        ]
        if fresh:
            await self.mount_all(fresh)
