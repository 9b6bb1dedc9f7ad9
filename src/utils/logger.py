import logging
import os

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "pos"


class CenteredFormatter(logging.Formatter):
    longest_name_length = 14  # Initial default width

    def __init__(self, fmt=None, datefmt=None, style="%", initial_width=14):
        super().__init__(fmt, datefmt, style)
        CenteredFormatter.longest_name_length = initial_width

    def format(self, record):
        short_name = record.name.removeprefix(ROOT_LOGGER + ".")
        CenteredFormatter.longest_name_length = max(
            CenteredFormatter.longest_name_length, len(short_name)
        )

        dynamic_width = CenteredFormatter.longest_name_length + 2
        record.short_name = short_name.center(dynamic_width - 2)
        return super().format(record)


def _configure_root(debug: bool) -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER)
    log_level = logging.DEBUG if debug else logging.INFO
    root.setLevel(log_level)

    if not root.handlers:
        # stderr, so a log line never lands inside the register's screen buffer
        console_handler = RichHandler(
            console=Console(stderr=True),
            show_time=True,
            show_level=True,
            show_path=False,
            rich_tracebacks=True,
            log_time_format="[%X]",
        )
        console_handler.setFormatter(CenteredFormatter("[%(short_name)s]  %(message)s"))
        console_handler.setLevel(log_level)
        root.addHandler(console_handler)
        root.propagate = False

    return root


def get_logger(name=None) -> logging.Logger:
    """
    Returns a child of the "pos" logger; the first call installs the RichHandler.
    Set DEBUG=1 in the environment for debug output.
    """
    root = _configure_root(bool(os.getenv("DEBUG")))
    if not name:
        return root
    return root.getChild(name)
