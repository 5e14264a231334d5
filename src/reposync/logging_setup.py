import logging
import sys

from rich.console import Console
from rich.logging import RichHandler

from .constants import APP_NAME

logger = logging.getLogger(APP_NAME)

_configured = False


def setup_logging(level: int = logging.INFO, interactive: bool = True) -> None:
    """Configures the package logger for the whole process.

    This is the only place handlers are attached. Call it once at process start;
    later calls only adjust the level.

    Args:
        level (int, optional): Minimum level to emit. Defaults to INFO.
        interactive (bool, optional):   If True, log through a rich console handler.
                                        If False, log plain lines to stderr.
                                        Defaults to True.
    """
    global _configured

    logger.setLevel(level)
    if _configured:
        return

    if interactive:
        handler: logging.Handler = RichHandler(
            console=Console(stderr=True), show_path=False, rich_tracebacks=True
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter(
                "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
            )
        )

    logger.addHandler(handler)
    _configured = True
