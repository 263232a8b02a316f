import logging

from rich.logging import RichHandler


def configure_logging(level: str | int = logging.INFO) -> None:
    """Send every module logger through rich. Safe to call more than once."""
    root = logging.getLogger()
    root.setLevel(level)
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        root.addHandler(RichHandler(rich_tracebacks=True, show_path=False))
