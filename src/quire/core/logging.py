import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(log_level: str = "INFO", log_file: Path | None = None, console: Console | None = None):
    """
    Configures logging for the application.

    Console output goes through rich on stderr; ``log_file`` adds a plain file log.
    """
    log_level = log_level.upper()

    handlers: list[logging.Handler] = [
        RichHandler(
            console=console or Console(stderr=True),
            rich_tracebacks=True,
            show_path=False,
            log_time_format="[%Y-%m-%d %H:%M:%S]",
        )
    ]
    if log_file is not None:
        # Ensure the logs directory exists
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        handlers.append(file_handler)

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        handlers=handlers,
        force=True,
    )

    # Quieten down noisy libraries
    logging.getLogger("markdown_it").setLevel(logging.WARNING)
